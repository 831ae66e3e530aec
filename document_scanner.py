# document_scanner.py

import argparse
import logging
import os
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple, Union

import cv2
import numpy as np
from matplotlib.figure import Figure

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.tif', '.tiff', '.bmp')
TIE_POLICIES = ('order_points', 'first_branch', 'raise')

Point = Tuple[float, float]


# --- Errors ---

class ScanError(Exception):
    """Base class for every failure of a scan run."""
    kind = "ScanError"

    def __init__(self, message: str):
        super().__init__(message)
        # partial ScanResult of the failed run, attached by rectify_image
        self.result: Optional["ScanResult"] = None


class ImageLoadFailure(ScanError):
    kind = "ImageLoadFailure"


class NoContoursFound(ScanError):
    kind = "NoContoursFound"


class InsufficientPolygonPoints(ScanError):
    kind = "InsufficientPolygonPoints"


class AmbiguousCornerRole(ScanError):
    kind = "AmbiguousCornerRole"


class DegenerateQuadrilateral(ScanError):
    kind = "DegenerateQuadrilateral"


class OutputWriteFailure(ScanError):
    kind = "OutputWriteFailure"


# --- Configuration ---

@dataclass(frozen=True)
class ScanConfig:
    """Tunable constants of the rectification pipeline."""

    width: int = 500
    aspect_ratio: float = 1.333
    kernel_radius: int = 3
    close_iterations: int = 3
    threshold: int = 200
    approx_epsilon: float = 0.02
    epsilon_relative: bool = False  # epsilon *= contour perimeter when set
    tie_policy: str = "order_points"
    tie_tolerance: float = 0.05  # fraction of the polygon height
    min_corner_distance: float = 2.0
    min_quad_area: float = 100.0
    max_condition: float = 1e12

    @property
    def height(self) -> int:
        return int(round(self.width * self.aspect_ratio))

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height), the order cv2 expects for dsize."""
        return self.width, self.height

    def validate(self) -> None:
        if self.width <= 0:
            raise ValueError("width must be > 0")
        if self.aspect_ratio <= 0 or self.height <= 0:
            raise ValueError("aspect_ratio must give a positive height")
        if self.kernel_radius < 0:
            raise ValueError("kernel_radius must be >= 0")
        if self.close_iterations < 0:
            raise ValueError("close_iterations must be >= 0")
        if not (0 < self.threshold <= 255):
            raise ValueError("threshold must be within (0, 255]")
        if self.approx_epsilon < 0:
            raise ValueError("approx_epsilon must be >= 0")
        if self.tie_policy not in TIE_POLICIES:
            raise ValueError(f"tie_policy must be one of {TIE_POLICIES}, got {self.tie_policy!r}")
        if self.tie_tolerance < 0:
            raise ValueError("tie_tolerance must be >= 0")
        if self.min_corner_distance < 0 or self.min_quad_area < 0:
            raise ValueError("min_corner_distance and min_quad_area must be >= 0")
        if self.max_condition <= 0:
            raise ValueError("max_condition must be > 0")


# --- Data types ---

@dataclass(frozen=True)
class CornerSet:
    """Four labelled document corners in working-image pixel coordinates."""

    top_left: Point
    top_right: Point
    bottom_right: Point
    bottom_left: Point

    @classmethod
    def from_ordered(cls, pts: np.ndarray) -> "CornerSet":
        """Build from a (4, 2) array ordered top-left, top-right, bottom-right, bottom-left."""
        tl, tr, br, bl = [(float(p[0]), float(p[1])) for p in np.asarray(pts).reshape(4, 2)]
        return cls(top_left=tl, top_right=tr, bottom_right=br, bottom_left=bl)

    def ordered(self) -> np.ndarray:
        """Corners clockwise from top-left: TL, TR, BR, BL."""
        return np.array([self.top_left, self.top_right, self.bottom_right, self.bottom_left], dtype="float32")

    def as_array(self) -> np.ndarray:
        """Corners in destination order: TL, BL, BR, TR."""
        return np.array([self.top_left, self.bottom_left, self.bottom_right, self.top_right], dtype="float32")


class ExtremalPoints(NamedTuple):
    min_x: np.ndarray
    max_x: np.ndarray
    min_y: np.ndarray
    max_y: np.ndarray


@dataclass
class ScanResult:
    """Every intermediate of one pipeline run; later fields stay None when a stage failed."""

    config: ScanConfig
    working: Optional[np.ndarray] = None
    binary: Optional[np.ndarray] = None
    contours: List[np.ndarray] = field(default_factory=list)
    document_contour: Optional[np.ndarray] = None
    polygon: Optional[np.ndarray] = None
    corners: Optional[CornerSet] = None
    homography: Optional[np.ndarray] = None
    rectified: Optional[np.ndarray] = None
    logs: List[str] = field(default_factory=list)


# --- Helper Functions ---

def order_points(pts: np.ndarray) -> np.ndarray:
    """Pick top-left, top-right, bottom-right, bottom-left out of an (N, 2) point set.

    Top-left has the smallest x+y, bottom-right the largest; top-right has the
    smallest y-x, bottom-left the largest. Ties go to the first point seen.
    """
    pts = np.asarray(pts, dtype="float32").reshape(-1, 2)
    if len(pts) < 4:
        raise InsufficientPolygonPoints(f"order_points requires at least 4 points, got {len(pts)}")

    rect = np.zeros((4, 2), dtype="float32")
    s = pts.sum(axis=1)
    rect[0] = pts[np.argmin(s)]
    rect[2] = pts[np.argmax(s)]
    diff = np.diff(pts, axis=1)  # y - x
    rect[1] = pts[np.argmin(diff)]
    rect[3] = pts[np.argmax(diff)]
    return rect


def extremal_points(polygon: np.ndarray) -> ExtremalPoints:
    """Vertices with minimum x, maximum x, minimum y and maximum y (first seen wins)."""
    xs, ys = polygon[:, 0], polygon[:, 1]
    return ExtremalPoints(
        min_x=polygon[np.argmin(xs)],
        max_x=polygon[np.argmax(xs)],
        min_y=polygon[np.argmin(ys)],
        max_y=polygon[np.argmax(ys)],
    )


def _cross(o: np.ndarray, a: np.ndarray, b: np.ndarray) -> float:
    return float((a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0]))


def _segments_cross(p1: np.ndarray, p2: np.ndarray, q1: np.ndarray, q2: np.ndarray) -> bool:
    """True when the two segments properly intersect."""
    d1 = _cross(q1, q2, p1)
    d2 = _cross(q1, q2, p2)
    d3 = _cross(p1, p2, q1)
    d4 = _cross(p1, p2, q2)
    return d1 * d2 < 0 and d3 * d4 < 0


def quad_area(pts: np.ndarray) -> float:
    """Shoelace area of a polygon given in vertex order."""
    x, y = pts[:, 0].astype(np.float64), pts[:, 1].astype(np.float64)
    return 0.5 * abs(float(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))))


def _fmt(p) -> str:
    return f"({p[0]:.0f}, {p[1]:.0f})"


# --- Pipeline stages ---

def preprocess(image: np.ndarray, config: ScanConfig) -> Tuple[np.ndarray, np.ndarray]:
    """Resize to the working size, close, and binarise with the fixed threshold.

    Returns (working, binary): the resized grayscale image and its binary mask.
    """
    if image is None or image.size == 0:
        raise ImageLoadFailure("Input image is empty")
    if image.ndim == 3 and image.shape[2] == 1:
        image = image[:, :, 0]
    if image.ndim == 3:
        if image.shape[2] not in (3, 4):
            raise ImageLoadFailure(f"Unsupported channel count {image.shape[2]}, expected 1, 3 or 4")
        code = cv2.COLOR_BGRA2GRAY if image.shape[2] == 4 else cv2.COLOR_BGR2GRAY
        image = cv2.cvtColor(image, code)
    elif image.ndim != 2:
        raise ImageLoadFailure(f"Unsupported image shape {image.shape}")
    if image.dtype != np.uint8:
        image = np.clip(image, 0, 255).astype(np.uint8)

    working = cv2.resize(image, config.size, interpolation=cv2.INTER_AREA)

    r = config.kernel_radius
    if r > 0 and config.close_iterations > 0:
        element = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (2 * r + 1, 2 * r + 1), (r, r))
        closed = cv2.morphologyEx(working, cv2.MORPH_CLOSE, element, iterations=config.close_iterations)
    else:
        closed = working.copy()

    binary = np.where(closed >= config.threshold, 255, 0).astype(np.uint8)
    return working, binary


def extract_contours(binary: np.ndarray) -> List[np.ndarray]:
    """All closed boundaries of the white regions, flat list, simple chain compression.

    A mask that is entirely black or entirely white has no boundary: the image
    frame is not a page edge.
    """
    if not binary.any() or binary.all():
        return []
    contours, _ = cv2.findContours(binary.copy(), cv2.RETR_LIST, cv2.CHAIN_APPROX_SIMPLE)
    return list(contours)


def select_largest_contour(contours: Sequence[np.ndarray]) -> np.ndarray:
    if len(contours) == 0:
        raise NoContoursFound("No contours found in the thresholded image")
    areas = [cv2.contourArea(c) for c in contours]
    return contours[int(np.argmax(areas))]


def approximate_polygon(contour: np.ndarray, config: ScanConfig) -> np.ndarray:
    """Closed-curve Douglas-Peucker simplification; returns an (N, 2) array."""
    epsilon = config.approx_epsilon
    if config.epsilon_relative:
        epsilon *= cv2.arcLength(contour, True)
    approx = cv2.approxPolyDP(contour, epsilon, True)
    return approx.reshape(-1, 2)


def assign_corners(polygon: np.ndarray, config: ScanConfig) -> CornerSet:
    """Label four corners of the approximated document polygon.

    A 4-vertex polygon is labelled directly by order_points. A larger polygon
    is reduced to its extremal vertices, and the tilt of the page (whether the
    rightmost vertex sits lower or higher than the leftmost) decides which
    extremal vertex plays which role. When the two sit at the same height the
    page is close to axis-aligned and config.tie_policy resolves it.
    """
    polygon = np.asarray(polygon).reshape(-1, 2)
    if len(polygon) < 4:
        raise InsufficientPolygonPoints(f"Approximated polygon has {len(polygon)} points, need 4")
    if len(polygon) == 4:
        return CornerSet.from_ordered(order_points(polygon))

    ext = extremal_points(polygon)
    tolerance = config.tie_tolerance * float(ext.max_y[1] - ext.min_y[1])
    dy = float(ext.max_x[1] - ext.min_x[1])

    if abs(dy) <= tolerance:
        if config.tie_policy == "raise":
            raise AmbiguousCornerRole(
                f"Leftmost {_fmt(ext.min_x)} and rightmost {_fmt(ext.max_x)} points share the same height"
            )
        if config.tie_policy == "order_points":
            logger.debug("Corner roles tied (dy=%.1f), ordering the whole polygon", dy)
            return CornerSet.from_ordered(order_points(polygon))
        dy = 1.0  # first_branch

    if dy > 0:
        ordered = [ext.min_x, ext.min_y, ext.max_x, ext.max_y]
    else:
        ordered = [ext.min_y, ext.max_x, ext.max_y, ext.min_x]
    return CornerSet.from_ordered(np.array(ordered, dtype="float32"))


def validate_corners(corners: CornerSet, config: ScanConfig) -> None:
    """Raise DegenerateQuadrilateral unless the corners form a usable simple quadrilateral."""
    pts = corners.ordered()
    for i in range(4):
        for j in range(i + 1, 4):
            if np.linalg.norm(pts[i] - pts[j]) < config.min_corner_distance:
                raise DegenerateQuadrilateral(f"Corners {_fmt(pts[i])} and {_fmt(pts[j])} coincide")

    tl, tr, br, bl = pts
    if _segments_cross(tl, tr, br, bl) or _segments_cross(tr, br, bl, tl):
        raise DegenerateQuadrilateral("Corner quadrilateral is self-intersecting")

    area = quad_area(pts)
    if area < config.min_quad_area:
        raise DegenerateQuadrilateral(f"Corner quadrilateral area {area:.1f} is below {config.min_quad_area}")


def locate_document(
    contours: Sequence[np.ndarray], config: ScanConfig
) -> Tuple[np.ndarray, np.ndarray, CornerSet]:
    """Pick the page contour and reduce it to labelled corners.

    Returns (document_contour, polygon, corners).
    """
    contour = select_largest_contour(contours)
    polygon = approximate_polygon(contour, config)
    corners = assign_corners(polygon, config)
    validate_corners(corners, config)
    return contour, polygon, corners


def destination_points(config: ScanConfig) -> np.ndarray:
    """Canonical rectangle in CornerSet.as_array order: TL, BL, BR, TR."""
    w, h = config.size
    return np.array([[0, 0], [0, h], [w, h], [w, 0]], dtype="float32")


def _solve_homography(corners: CornerSet, config: ScanConfig) -> np.ndarray:
    homography, _ = cv2.findHomography(corners.as_array(), destination_points(config))
    if homography is None or homography.shape != (3, 3) or not np.all(np.isfinite(homography)):
        raise DegenerateQuadrilateral(f"Homography solve failed for corners {corners}")

    condition = np.linalg.cond(homography)
    if not np.isfinite(condition) or condition > config.max_condition:
        raise DegenerateQuadrilateral(f"Homography is ill-conditioned (cond={condition:.3g})")
    return homography


def compute_homography(corners: CornerSet, config: ScanConfig) -> np.ndarray:
    validate_corners(corners, config)
    return _solve_homography(corners, config)


def warp_to_output(working: np.ndarray, homography: np.ndarray, config: ScanConfig) -> np.ndarray:
    """Resample the working image through the homography into config.size, black outside."""
    return cv2.warpPerspective(
        working, homography, config.size,
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=0,
    )


def rectify(working: np.ndarray, corners: CornerSet, config: ScanConfig) -> Tuple[np.ndarray, np.ndarray]:
    """Warp the working image so the corners land on the output rectangle.

    Returns (rectified, homography); rectified is exactly config.size.
    """
    homography = compute_homography(corners, config)
    return warp_to_output(working, homography, config), homography


# --- Main Pipeline ---

def rectify_image(image: np.ndarray, config: Optional[ScanConfig] = None) -> ScanResult:
    """Run the full pipeline on a grayscale image.

    Pure function of (image, config): no state survives the call, so separate
    images can be processed concurrently. Raises a ScanError subclass on
    failure; the partial ScanResult is available as ``error.result``.
    """
    config = config or ScanConfig()
    config.validate()
    result = ScanResult(config=config)

    def log_debug(message: str, level: int = logging.INFO):
        logger.log(level, message)
        result.logs.append(message)

    try:
        result.working, result.binary = preprocess(image, config)
        log_debug(f"Image resized to {config.width}x{config.height}")

        result.contours = extract_contours(result.binary)
        log_debug(f"Number of contours found = {len(result.contours)}")

        result.document_contour, result.polygon, result.corners = locate_document(result.contours, config)
        c = result.corners
        log_debug(f"Largest contour area = {cv2.contourArea(result.document_contour):.0f}")
        log_debug(f"Approximated polygon size = {len(result.polygon)}")
        log_debug(
            f"Corners TL={_fmt(c.top_left)} TR={_fmt(c.top_right)} "
            f"BR={_fmt(c.bottom_right)} BL={_fmt(c.bottom_left)}"
        )

        # corners were validated by locate_document
        result.homography = _solve_homography(result.corners, config)
        result.rectified = warp_to_output(result.working, result.homography, config)
        log_debug(f"Homography:\n{np.array2string(result.homography, precision=4)}", logging.DEBUG)
    except ScanError as e:
        log_debug(f"[ERROR] {e.kind}: {e}", logging.WARNING)
        e.result = result
        raise

    return result


# --- Image I/O ---

def load_image(source: Union[str, os.PathLike, bytes, bytearray, memoryview]) -> np.ndarray:
    """Read a grayscale image from a path or from encoded bytes."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        buffer = np.frombuffer(source, dtype=np.uint8)
        image = cv2.imdecode(buffer, cv2.IMREAD_GRAYSCALE) if buffer.size else None
        label = "<bytes>"
    else:
        label = os.fspath(source)
        if not os.path.isfile(label):
            raise ImageLoadFailure(f"Image not found: {label}")
        image = cv2.imread(label, cv2.IMREAD_GRAYSCALE)

    if image is None or image.size == 0:
        raise ImageLoadFailure(f"Image load failed: {label}")
    return image


def save_image(image: np.ndarray, path: Union[str, os.PathLike]) -> None:
    path = os.fspath(path)
    try:
        ok = cv2.imwrite(path, image)
    except cv2.error as e:
        raise OutputWriteFailure(f"Could not save image to {path}: {e}") from e
    if not ok:
        raise OutputWriteFailure(f"Could not save image to {path}")


def encode_image(image: np.ndarray, ext: str = ".png") -> bytes:
    try:
        ok, buffer = cv2.imencode(ext, image)
    except cv2.error as e:
        raise OutputWriteFailure(f"Could not encode image as {ext}: {e}") from e
    if not ok:
        raise OutputWriteFailure(f"Could not encode image as {ext}")
    return buffer.tobytes()


# --- Debug steps ---

def debug_images(result: ScanResult) -> Dict[str, np.ndarray]:
    """Annotated copies of every stage that produced output, in pipeline order."""
    images: Dict[str, np.ndarray] = {}
    if result.working is None:
        return images
    images["Resized"] = result.working
    if result.binary is not None:
        images["Thresh"] = result.binary

    if result.contours:
        drawn = cv2.cvtColor(result.working, cv2.COLOR_GRAY2BGR)
        cv2.drawContours(drawn, result.contours, -1, (0, 255, 0), 3)
        images["Contours"] = drawn

    if result.document_contour is not None:
        mask = np.zeros(result.working.shape[:2], dtype=np.uint8)
        cv2.drawContours(mask, [result.document_contour], -1, 255, cv2.FILLED)
        images["Mask"] = mask

    if result.polygon is not None:
        poly = np.zeros(result.working.shape[:2] + (3,), dtype=np.uint8)
        cv2.polylines(poly, [result.polygon.reshape(-1, 1, 2).astype(np.int32)], True, (0, 255, 0), 2)
        images["Polygon"] = poly

    if result.corners is not None:
        labelled = cv2.cvtColor(result.working, cv2.COLOR_GRAY2BGR)
        pts = result.corners.ordered()
        cv2.polylines(labelled, [pts.reshape(-1, 1, 2).astype(np.int32)], True, (0, 0, 255), 2)
        for name, p in zip(("TL", "TR", "BR", "BL"), pts):
            center = (int(round(p[0])), int(round(p[1])))
            cv2.circle(labelled, center, 6, (0, 255, 255), -1)
            cv2.putText(labelled, name, (center[0] + 8, center[1] - 8),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 0, 0), 2, cv2.LINE_AA)
        images["Corners"] = labelled

    if result.rectified is not None:
        images["Scanned"] = result.rectified
    return images


def save_step_sheet(images: Dict[str, np.ndarray], path: str, cols: int = 4) -> None:
    """All debug images on one matplotlib page."""
    rows = max(1, -(-len(images) // cols))
    fig = Figure(figsize=(4 * cols, 5 * rows))
    axes = fig.subplots(rows, cols, squeeze=False)
    for ax, (name, img) in zip(axes.flat, images.items()):
        if img.ndim == 2:
            ax.imshow(img, cmap="gray", vmin=0, vmax=255)
        else:
            ax.imshow(cv2.cvtColor(img, cv2.COLOR_BGR2RGB))
        ax.set_title(name)
    for ax in axes.flat:
        ax.axis("off")
    fig.tight_layout()
    fig.savefig(path)


def write_debug_steps(result: ScanResult, debug_dir: str, base_name: str) -> List[str]:
    """Write numbered stage images, the run log and a step sheet. Returns written paths.

    Debug output never fails a scan; write errors are logged and skipped.
    """
    os.makedirs(debug_dir, exist_ok=True)
    written = []
    images = debug_images(result)
    logger.info("Saving %d debug images to: %s", len(images), debug_dir)

    for i, (name, img) in enumerate(images.items()):
        path = os.path.join(debug_dir, f"{base_name}_{i:02d}_{name}.jpg")
        try:
            save_image(img, path)
            written.append(path)
        except OutputWriteFailure as e:
            logger.error("Write debug image %s failed: %s", name, e)

    log_path = os.path.join(debug_dir, f"{base_name}_log.txt")
    try:
        with open(log_path, 'w', encoding='utf-8') as f:
            f.write('\n'.join(result.logs))
        written.append(log_path)
    except OSError as e:
        logger.error("Write debug log failed: %s", e)

    if images:
        sheet_path = os.path.join(debug_dir, f"{base_name}_steps.png")
        try:
            save_step_sheet(images, sheet_path)
            written.append(sheet_path)
        except (OSError, ValueError) as e:
            logger.error("Write step sheet failed: %s", e)
    return written


# --- Entry points ---

def scan_document(
    image_path: Union[str, os.PathLike],
    output_path: Optional[Union[str, os.PathLike]] = None,
    config: Optional[ScanConfig] = None,
    save_debug_steps: bool = False,
    debug_dir: str = "debug_steps",
    base_name: Optional[str] = None,
) -> ScanResult:
    """Load, rectify and optionally save one document image.

    base_name prefixes the debug files; it defaults to the input file stem.
    """
    name = os.path.basename(os.fspath(image_path))
    if base_name is None:
        base_name = os.path.splitext(name)[0]
    logger.info("--- Processing: %s ---", name)

    image = load_image(image_path)
    try:
        result = rectify_image(image, config)
    except ScanError as e:
        if save_debug_steps and e.result is not None:
            write_debug_steps(e.result, debug_dir, base_name)
        raise

    if output_path is not None:
        save_image(result.rectified, output_path)
        logger.info("Successfully saved to: %s", os.fspath(output_path))
    if save_debug_steps:
        write_debug_steps(result, debug_dir, base_name)
    return result


def scan_batch(
    image_paths: Iterable[Union[str, os.PathLike]],
    output_dir: str,
    config: Optional[ScanConfig] = None,
    save_debug: bool = False,
) -> Tuple[Dict[str, ScanResult], Dict[str, ScanError]]:
    """Scan each image independently; one failure does not stop the batch.

    Inputs sharing a file stem get numbered names (page, page_1, ...) so no
    output overwrites another. Returns (results, failures), both keyed by
    input path.
    """
    os.makedirs(output_dir, exist_ok=True)
    results: Dict[str, ScanResult] = {}
    failures: Dict[str, ScanError] = {}
    used_names = set()

    for image_path in image_paths:
        key = os.fspath(image_path)
        stem = os.path.splitext(os.path.basename(key))[0]
        base_name, n = stem, 0
        while base_name in used_names:
            n += 1
            base_name = f"{stem}_{n}"
        used_names.add(base_name)
        output_path = os.path.join(output_dir, f"{base_name}_scanned.jpg")
        try:
            results[key] = scan_document(
                key, output_path, config,
                save_debug_steps=save_debug,
                debug_dir=os.path.join(output_dir, "debug_steps"),
                base_name=base_name,
            )
        except ScanError as e:
            logger.warning("Failed to scan document %s: %s", os.path.basename(key), e)
            failures[key] = e
    return results, failures


def collect_image_paths(inputs: Iterable[str]) -> List[str]:
    """Expand directories to the image files they contain, sorted by name."""
    paths = []
    for item in inputs:
        if os.path.isdir(item):
            names = sorted(f for f in os.listdir(item) if f.lower().endswith(IMAGE_EXTENSIONS))
            paths.extend(os.path.join(item, f) for f in names)
        else:
            paths.append(item)
    return paths


def build_arg_parser() -> argparse.ArgumentParser:
    defaults = ScanConfig()
    p = argparse.ArgumentParser(
        prog="document-scanner",
        description="Detect a photographed page and warp it flat.",
    )
    p.add_argument("inputs", nargs="+", help="Image files or directories of images.")
    p.add_argument("-o", "--output-dir", default="scan_results", help="Where scanned images are written.")
    p.add_argument("--width", type=int, default=defaults.width)
    p.add_argument("--aspect-ratio", type=float, default=defaults.aspect_ratio)
    p.add_argument("--kernel-radius", type=int, default=defaults.kernel_radius)
    p.add_argument("--close-iterations", type=int, default=defaults.close_iterations)
    p.add_argument("--threshold", type=int, default=defaults.threshold)
    p.add_argument("--epsilon", type=float, default=defaults.approx_epsilon)
    p.add_argument("--epsilon-relative", action="store_true", help="Treat --epsilon as a fraction of the perimeter.")
    p.add_argument("--tie-policy", choices=TIE_POLICIES, default=defaults.tie_policy)
    p.add_argument("--debug", action="store_true", help="Save debug steps next to the output.")
    p.add_argument("-v", "--verbose", action="store_true")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s: %(message)s",
    )

    config = replace(
        ScanConfig(),
        width=args.width,
        aspect_ratio=args.aspect_ratio,
        kernel_radius=args.kernel_radius,
        close_iterations=args.close_iterations,
        threshold=args.threshold,
        approx_epsilon=args.epsilon,
        epsilon_relative=args.epsilon_relative,
        tie_policy=args.tie_policy,
    )
    try:
        config.validate()
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    paths = collect_image_paths(args.inputs)
    if not paths:
        logger.error("No images found to process.")
        return 2

    results, failures = scan_batch(paths, args.output_dir, config, save_debug=args.debug)
    logger.info("Processing complete: %d scanned, %d failed. Results in '%s'.",
                len(results), len(failures), args.output_dir)
    return 0 if not failures else 2


if __name__ == '__main__':
    raise SystemExit(main())
