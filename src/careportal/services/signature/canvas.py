"""In-memory ink surface that turns pointer input into a flattened PNG.

Strokes are stored in CSS pixels and rasterised onto a backing buffer of
``css size * device pixel ratio``. Resizing rebuilds the buffer and replays
the strokes at the new scale, so ink stays under the pointer on high-DPI or
rotated viewports.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from PIL import Image, ImageDraw

from ...config import settings
from .encoding import EmptySignatureError, encode_png_data_uri, image_has_ink

INK_COLOR = (17, 17, 17, 255)

Point = tuple[float, float]


@dataclass(frozen=True, slots=True)
class BoundingRect:
    """On-screen box of the surface, as reported by the browser."""

    left: float
    top: float
    width: float
    height: float


@dataclass(slots=True)
class Stroke:
    points: list[Point] = field(default_factory=list)


class SignatureCanvas:
    def __init__(
        self,
        css_width: float | None = None,
        css_height: float | None = None,
        device_pixel_ratio: float = 1.0,
        line_width: float | None = None,
        enabled: bool = True,
    ) -> None:
        self.line_width = line_width if line_width is not None else settings.signature_line_width
        self.enabled = enabled
        self.strokes: list[Stroke] = []
        self._active: Optional[Stroke] = None
        self.resize(
            css_width or settings.signature_width,
            css_height or settings.signature_height,
            device_pixel_ratio,
        )

    @classmethod
    def from_strokes(
        cls,
        strokes: Iterable[Sequence[Sequence[float]]],
        css_width: float | None = None,
        css_height: float | None = None,
        device_pixel_ratio: float = 1.0,
    ) -> "SignatureCanvas":
        """Rebuild a surface from strokes recorded in CSS pixels."""

        canvas = cls(css_width, css_height, device_pixel_ratio)
        budget = settings.signature_max_points
        for points in strokes:
            cleaned = [(float(point[0]), float(point[1])) for point in points if len(point) >= 2]
            if not cleaned:
                continue
            budget -= len(cleaned)
            if budget < 0:
                raise ValueError("Unterschrift enthält zu viele Punkte.")
            canvas.pointer_down(*cleaned[0])
            for x, y in cleaned[1:]:
                canvas.pointer_move(x, y)
            canvas.pointer_up()
        return canvas

    @property
    def pixel_size(self) -> tuple[int, int]:
        return self.image.size

    def resize(self, css_width: float, css_height: float, device_pixel_ratio: float = 1.0) -> None:
        """Rebuild the backing buffer for a new CSS box or pixel ratio."""

        if css_width <= 0 or css_height <= 0:
            raise ValueError("Canvas dimensions must be positive.")
        self.css_width = float(css_width)
        self.css_height = float(css_height)
        self.ratio = max(1.0, float(device_pixel_ratio or 1.0))
        size = (round(self.css_width * self.ratio), round(self.css_height * self.ratio))
        if size[0] * size[1] > settings.signature_max_pixels:
            raise ValueError("Unterschriftsfläche ist zu groß.")
        self.image = Image.new("RGBA", size, (0, 0, 0, 0))
        self._draw = ImageDraw.Draw(self.image)
        for stroke in self.strokes:
            self._render_stroke(stroke)

    def to_surface_point(self, client_x: float, client_y: float, rect: BoundingRect | None = None) -> Point:
        """Convert viewport coordinates into CSS pixels of the surface.

        ``rect`` may differ from the CSS box when the page is zoomed; the
        scale factor absorbs that difference.
        """

        if rect is None or rect.width <= 0 or rect.height <= 0:
            return (client_x, client_y)
        scale_x = self.css_width / rect.width
        scale_y = self.css_height / rect.height
        return ((client_x - rect.left) * scale_x, (client_y - rect.top) * scale_y)

    def pointer_down(self, x: float, y: float, rect: BoundingRect | None = None) -> bool:
        if not self.enabled:
            return False
        self._active = Stroke(points=[self.to_surface_point(x, y, rect)])
        self.strokes.append(self._active)
        return True

    def pointer_move(self, x: float, y: float, rect: BoundingRect | None = None) -> None:
        if self._active is None:
            return
        point = self.to_surface_point(x, y, rect)
        previous = self._active.points[-1]
        self._active.points.append(point)
        self._segment(previous, point)

    def pointer_up(self) -> None:
        self._active = None

    # Leaving the surface or a cancelled touch ends the stroke like a release.
    pointer_leave = pointer_up
    pointer_cancel = pointer_up

    @property
    def is_drawing(self) -> bool:
        return self._active is not None

    def clear(self) -> None:
        self.strokes = []
        self._active = None
        self.resize(self.css_width, self.css_height, self.ratio)

    def has_ink(self) -> bool:
        return image_has_ink(self.image)

    def to_data_uri(self) -> str:
        """Flatten the surface to a PNG data URI; empty surfaces are rejected."""

        if not self.has_ink():
            raise EmptySignatureError()
        return encode_png_data_uri(self.image)

    def _render_stroke(self, stroke: Stroke) -> None:
        for start, end in zip(stroke.points, stroke.points[1:]):
            self._segment(start, end)

    def _segment(self, start: Point, end: Point) -> None:
        width = max(1, round(self.line_width * self.ratio))
        a = (start[0] * self.ratio, start[1] * self.ratio)
        b = (end[0] * self.ratio, end[1] * self.ratio)
        self._draw.line([a, b], fill=INK_COLOR, width=width)
        radius = width / 2
        for cx, cy in (a, b):
            self._draw.ellipse((cx - radius, cy - radius, cx + radius, cy + radius), fill=INK_COLOR)
