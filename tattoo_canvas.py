import logging

import cairocffi as cairo
import cairosvg
import drawsvg as draw

logger = logging.getLogger(__name__)


# ============================================================================
# CANVAS (pen + path + trace over a drawsvg scene)
# ============================================================================

class Canvas:
    """A pen-based drawing context backed by a drawsvg scene.

    Mirrors the handful of cairo-style calls the renderer needs: a current
    point, relative moves, relative strokes that leave the path open, centered
    text and export. Every stroke is also appended to ``strokes`` as
    ``(x, y, dx, dy)`` in user units and every label to ``labels`` as
    ``(x, y, text)``, so a drawing can be compared as a command trace without
    rasterising it.
    """

    def __init__(self, width, height):
        self.width = width
        self.height = height
        self.x = 0
        self.y = 0
        self.strokes = []
        self.labels = []

        self.background = None
        self.background_opacity = 1.0
        self.stroke_width = 1
        self.stroke_linecap = 'butt'
        self.color = 'black'
        self.font_size = 10
        self.font_family = 'sans-serif'
        self.scale = 1.0

        self._elements = []
        self._path = None

    # -- state ---------------------------------------------------------------

    def set_background(self, color, opacity=1.0):
        self.background = color
        self.background_opacity = opacity

    def set_stroke(self, width, linecap='butt', color='black'):
        """Set stroke attributes for subsequent strokes (starts a new path)."""
        self.stroke_width = width
        self.stroke_linecap = linecap
        self.color = color
        self._path = None

    def set_font(self, size, family='sans-serif'):
        self.font_size = size
        self.font_family = family

    def set_scale(self, factor):
        """Apply a uniform axis scale to everything on the surface."""
        if factor <= 0:
            raise ValueError(f"scale must be > 0, got {factor}")
        self.scale = factor

    @property
    def position(self):
        return (self.x, self.y)

    # -- pen movement --------------------------------------------------------

    def move_to(self, x, y):
        self.x, self.y = x, y
        if self._path is not None:
            self._path.M(x, y)

    def rel_move_to(self, dx, dy):
        self.x += dx
        self.y += dy
        if self._path is not None:
            self._path.m(dx, dy)

    def _current_path(self):
        if self._path is None:
            self._path = draw.Path(
                stroke=self.color, stroke_width=self.stroke_width,
                stroke_linecap=self.stroke_linecap, stroke_linejoin='miter',
                fill='none')
            self._path.M(self.x, self.y)
            self._elements.append(self._path)
        return self._path

    def rel_line_to(self, dx, dy):
        """Stroke a relative line; the pen ends at the far end."""
        self._current_path().l(dx, dy)
        self.strokes.append((self.x, self.y, dx, dy))
        self.x += dx
        self.y += dy

    def rel_line_to_and_back(self, dx, dy):
        """Stroke a relative line, then return the pen to where it started."""
        self.rel_line_to(dx, dy)
        self.rel_move_to(-dx, -dy)

    # -- text ----------------------------------------------------------------

    def text_width(self, text):
        """Horizontal advance of text in the current font, in user units."""
        if not text:
            return 0.0
        surface = cairo.ImageSurface(cairo.FORMAT_ARGB32, 1, 1)
        context = cairo.Context(surface)
        context.select_font_face(self.font_family)
        context.set_font_size(self.font_size)
        x_advance = context.text_extents(text)[4]
        surface.finish()
        return x_advance

    def show_text_centered(self, text):
        """Draw text on the current baseline, horizontally centered at the pen.

        Whitespace is preserved, so leading spaces shift the visible glyphs.
        The pen does not move.
        """
        self._elements.append(draw.Text(
            text, self.font_size, self.x, self.y,
            fill=self.color, font_family=self.font_family,
            text_anchor='middle', xml__space='preserve'))
        self.labels.append((self.x, self.y, text))

    # -- export --------------------------------------------------------------

    def to_drawing(self):
        """Assemble the drawsvg scene for the current state of the canvas."""
        d = draw.Drawing(self.width, self.height)
        if self.background is not None:
            d.append(draw.Rectangle(0, 0, self.width, self.height,
                                    fill=self.background,
                                    fill_opacity=self.background_opacity))
        if self.scale != 1.0:
            target = draw.Group(transform=f'scale({self.scale})')
            d.append(target)
        else:
            target = d
        for element in self._elements:
            target.append(element)
        return d

    def as_svg(self):
        return self.to_drawing().as_svg()

    def save_png(self, path):
        """Rasterise the scene to a PNG of exactly width x height pixels."""
        svg_text = self.as_svg()
        cairosvg.svg2png(bytestring=svg_text.encode('utf-8'), write_to=path,
                         output_width=self.width, output_height=self.height)
        logger.debug("Rasterised %dx%d surface to %s", self.width, self.height, path)
