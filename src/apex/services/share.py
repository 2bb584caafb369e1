"""
Ride share cards.

Renders a square stats card for a ride with OpenCV and hands it to the
platform share sheet (Android) or the default image viewer (desktop).
"""

import logging
import unicodedata
import webbrowser
from pathlib import Path

import cv2
import numpy as np

from ..core.errors import ExportError
from ..core.models import Bike, Ride
from ..utils.formatting import format_duration, format_short_date

logger = logging.getLogger(__name__)

CARD_SIZE = 1080
PADDING = 60

# BGR
APEX_BLACK = (10, 10, 10)
APEX_WHITE = (226, 226, 226)
APEX_GREEN = (65, 255, 0)
APEX_DIM = (120, 120, 120)

FONT = cv2.FONT_HERSHEY_SIMPLEX
FONT_MONO = cv2.FONT_HERSHEY_DUPLEX


def share_bike_name(bike: Bike | None) -> str:
    """``Make (Year)``, matching the ride list cards."""
    if bike is None:
        return "Unknown Bike"
    return f"{bike.make} ({bike.year})" if bike.year else bike.make


def share_stats(ride: Ride) -> list[tuple[str, str]]:
    """Label/value pairs shown on the card. Max lean is omitted when zero."""
    stats = [
        ("Distance", f"{ride.distance_km:.1f} km"),
        ("Duration", format_duration(ride.start_time, ride.end_time)),
    ]
    if ride.max_lean > 0:
        stats.append(("Max Lean", f"{ride.max_lean:.1f}°"))
    stats.append(("Date", format_short_date(ride.start_time)))
    return stats


def card_text(text: str) -> str:
    """ASCII rendition of ``text`` for the Hershey fonts (accents dropped, degrees as "deg")."""
    text = text.replace("°", " deg")
    return unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")


def _put_text(
    image: np.ndarray,
    text: str,
    origin: tuple[int, int],
    scale: float,
    color: tuple[int, int, int],
    thickness: int = 2,
    font: int = FONT,
) -> None:
    # Hershey fonts are ASCII only; draw the degree sign as a ring.
    degree = text.endswith("°")
    if degree:
        text = text[:-1]
    text = card_text(text)
    cv2.putText(image, text, origin, font, scale, color, thickness, cv2.LINE_AA)
    if degree:
        (width, height), _ = cv2.getTextSize(text, font, scale, thickness)
        radius = max(3, int(height * 0.18))
        center = (origin[0] + width + radius + 4, origin[1] - height + radius)
        cv2.circle(image, center, radius, color, thickness, cv2.LINE_AA)


def _fit_scale(text: str, max_width: int, scale: float, thickness: int, font: int = FONT) -> float:
    while scale > 0.5:
        (width, _), _ = cv2.getTextSize(card_text(text), font, scale, thickness)
        if width <= max_width:
            break
        scale -= 0.1
    return scale


def _draw_route(image: np.ndarray, ride: Ride, top: int, bottom: int) -> None:
    """Draw the route as a polyline scaled into the band between top and bottom."""
    if ride.route_path is None or len(ride.route_path) < 2:
        return

    coords = np.asarray(ride.route_path.coordinates, dtype=np.float64)
    lon, lat = coords[:, 0], coords[:, 1]
    # Equirectangular projection is fine at ride scale.
    x = (lon - lon.min()) * np.cos(np.radians(lat.mean()))
    y = lat.max() - lat

    box_w = CARD_SIZE - 2 * PADDING
    box_h = bottom - top
    span = max(float(x.max()), float(y.max()), 1e-9)
    scale = min(box_w, box_h) / span
    x_px = PADDING + (box_w - x.max() * scale) / 2 + x * scale
    y_px = top + (box_h - y.max() * scale) / 2 + y * scale

    points = np.stack([x_px, y_px], axis=1).astype(np.int32).reshape(-1, 1, 2)
    cv2.polylines(image, [points], False, APEX_GREEN, 4, cv2.LINE_AA)


def render_share_card(ride: Ride, bike: Bike | None) -> np.ndarray:
    """
    Render a 1080x1080 BGR share card for a ride.

    Args:
        ride: Ride to summarise
        bike: Bike the ride was recorded on, if known

    Returns:
        BGR image
    """
    image = np.zeros((CARD_SIZE, CARD_SIZE, 3), dtype=np.uint8)
    image[:] = APEX_BLACK
    content_w = CARD_SIZE - 2 * PADDING

    bike_name = share_bike_name(bike)
    title = ride.ride_name or bike_name

    title_scale = _fit_scale(title, content_w, 2.0, 4)
    _put_text(image, title, (PADDING, PADDING + 50), title_scale, APEX_WHITE, 4)
    _put_text(image, bike_name, (PADDING, PADDING + 110), 1.1, APEX_DIM, 2)

    # Stats grid, two columns
    col_w = content_w // 2
    stats_top = PADDING + 220
    for i, (label, value) in enumerate(share_stats(ride)):
        row, col = divmod(i, 2)
        x = PADDING + col * col_w
        y = stats_top + row * 150
        _put_text(image, label, (x, y), 0.9, APEX_DIM, 2)
        value_scale = _fit_scale(value, col_w - 20, 1.8, 3, FONT_MONO)
        _put_text(image, value, (x, y + 70), value_scale, APEX_GREEN, 3, FONT_MONO)

    footer_y = CARD_SIZE - PADDING - 60
    _draw_route(image, ride, stats_top + 330, footer_y - 40)

    cv2.line(image, (PADDING, footer_y), (CARD_SIZE - PADDING, footer_y), (40, 40, 40), 1)
    _put_text(image, "APEX", (PADDING, CARD_SIZE - PADDING), 1.4, APEX_GREEN, 3, FONT_MONO)

    return image


def save_share_card(ride: Ride, bike: Bike | None, exports_dir: str | Path) -> Path:
    """Render and write ``ride-<id>.png``. Raises ExportError if encoding fails."""
    exports_dir = Path(exports_dir)
    exports_dir.mkdir(parents=True, exist_ok=True)
    path = exports_dir / f"ride-{ride.id}.png"

    image = render_share_card(ride, bike)
    if not cv2.imwrite(str(path), image):
        raise ExportError(f"Failed to write share image: {path}")

    logger.info(f"Share card saved: {path}")
    return path


def share_file(path: str | Path, platform_type: str = "desktop") -> str:
    """
    Share a file through the platform.

    Returns:
        ``"share"`` when the share sheet was used, ``"open"`` when the file
        was opened locally instead
    """
    path = Path(path)
    if platform_type == "android":
        try:
            _android_share(path)
            return "share"
        except Exception as e:
            logger.warning(f"Share sheet unavailable: {e}, opening file instead")

    webbrowser.open(path.resolve().as_uri())
    return "open"


def _android_share(path: Path, mime_type: str = "image/png") -> None:
    """Open the Android share sheet for ``path`` through a FileProvider URI."""
    from jnius import autoclass, cast

    PythonActivity = autoclass("org.kivy.android.PythonActivity")
    Intent = autoclass("android.content.Intent")
    FileProvider = autoclass("androidx.core.content.FileProvider")
    File = autoclass("java.io.File")
    String = autoclass("java.lang.String")

    activity = PythonActivity.mActivity
    context = cast("android.content.Context", activity.getApplicationContext())
    uri = FileProvider.getUriForFile(context, f"{context.getPackageName()}.fileprovider", File(str(path)))

    intent = Intent(Intent.ACTION_SEND)
    intent.setType(mime_type)
    intent.putExtra(Intent.EXTRA_STREAM, cast("android.os.Parcelable", uri))
    intent.addFlags(Intent.FLAG_GRANT_READ_URI_PERMISSION)
    title = cast("java.lang.CharSequence", String("Share ride"))
    activity.startActivity(Intent.createChooser(intent, title))
    logger.info(f"Share sheet opened for {path.name}")
