import logging

from shapely.geometry import LineString, MultiLineString
from shapely import affinity

from tattoo_canvas import Canvas

logger = logging.getLogger(__name__)


# ============================================================================
# GEOMETRY CONSTANTS
# ============================================================================

LINE_WIDTH = 6
SPACING = 24                  # gap between the two rails of a fork
LONG_BRANCH_LEN = 400
SHORT_BRANCH_LEN = round(LONG_BRANCH_LEN * 2 / 3)
BRANCH_MARGIN = SPACING * 3 // 2  # extra horizontal step before a child fork
WIDTH = 1800
HEIGHT = 920
FONT_SIZE = 72

MAX_NUMBER_COUNT = 10
LABEL_CELLS = 8
NUMBER_LEFT = 0x10
MAGNITUDE_BITS = (8, 4, 2, 1)  # scanned most significant first

CAP_HORIZONTAL = 'horizontal'
CAP_VERTICAL = 'vertical'
CAP_DIAGONAL = 'diagonal'

# Lane occupancy table layout
LANE_COUNT = 5
LEFT = 0
RIGHT = 1

DEFAULT_RENDER_PARAMS = {
    'line_width': LINE_WIDTH,
    'line_cap': 'square',
    'color': 'black',
    'background': 'white',
    'background_opacity': 0.0,
    'font_size': FONT_SIZE,
    'font_family': 'sans-serif',
    'scale': 1.0,
}


def _invariant(cond, msg):
    if not cond:
        raise AssertionError(msg)


# ============================================================================
# BRANCH TREE MODEL
# ============================================================================

def number_left(n):
    """Encode a magnitude whose zigzag starts on the left side."""
    return n | NUMBER_LEFT


def make_branch(lenl, lenr, capl=CAP_HORIZONTAL, capr=CAP_HORIZONTAL,
                left=None, right=None, numbers=(), number_text=None):
    """Create a branch node dict.

    A node with numbers is a number-leaf: it draws zigzag motifs instead of a
    fork and may not own children. number_text holds exactly LABEL_CELLS
    optional labels; None leaves every cell blank.
    """
    numbers = tuple(numbers)
    if number_text is None:
        number_text = (None,) * LABEL_CELLS
    number_text = tuple(number_text)

    _invariant(len(numbers) <= MAX_NUMBER_COUNT,
               f"branch holds {len(numbers)} numbers, capacity is {MAX_NUMBER_COUNT}")
    _invariant(len(number_text) == LABEL_CELLS,
               f"number_text must have {LABEL_CELLS} cells, got {len(number_text)}")
    _invariant(not (numbers and (left is not None or right is not None)),
               "a number-leaf cannot have children")

    return {
        'left': left,
        'right': right,
        'lenl': lenl,
        'capl': capl,
        'lenr': lenr,
        'capr': capr,
        'numbers': numbers,
        'number_text': number_text,
    }


def is_number_leaf(node):
    return len(node['numbers']) > 0


def build_illustration():
    """The reference tree: a two-level fork on the left, numbers on the right."""
    lowl = make_branch(SHORT_BRANCH_LEN, SHORT_BRANCH_LEN,
                       capl=CAP_HORIZONTAL, capr=CAP_HORIZONTAL)
    midl = make_branch(SHORT_BRANCH_LEN, SHORT_BRANCH_LEN,
                       capl=CAP_DIAGONAL, capr=CAP_HORIZONTAL,
                       left=lowl)
    lowr = make_branch(
        LONG_BRANCH_LEN, LONG_BRANCH_LEN,
        capl=CAP_HORIZONTAL, capr=CAP_HORIZONTAL,
        numbers=[number_left(1), 0, number_left(1), 2, number_left(5)],
        number_text=[None, "11,", None, "    25", None, None, None, "0"],
    )
    return make_branch(SHORT_BRANCH_LEN, LONG_BRANCH_LEN,
                       capl=CAP_DIAGONAL, capr=CAP_DIAGONAL,
                       left=midl, right=lowr)


# ============================================================================
# FORKS
# ============================================================================

def resolve_cap(length, offset, style):
    """Length of an inner rail after applying its cap style."""
    if style == CAP_HORIZONTAL:
        return length - offset
    if style == CAP_VERTICAL:
        return length
    if style == CAP_DIAGONAL:
        return length - offset // 2
    raise AssertionError(f"unknown cap style {style!r}")


def draw_fork(canvas, lenl, lenr, offset, capl=CAP_HORIZONTAL, capr=CAP_HORIZONTAL):
    """Draw a double-railed fork centred on the pen.

    The outer pair sits offset/2 above the pen at full length, the inner pair
    offset/2 below it, shortened by the cap styles. The pen is left where it
    was, also for odd offsets.
    """
    above = offset // 2
    canvas.rel_move_to(0, -above)
    canvas.rel_line_to_and_back(-lenl, lenl)
    canvas.rel_line_to_and_back(lenr, lenr)

    canvas.rel_move_to(0, offset)
    inner_l = resolve_cap(lenl, offset, capl)
    inner_r = resolve_cap(lenr, offset, capr)
    canvas.rel_line_to_and_back(-inner_l, inner_l)
    canvas.rel_line_to_and_back(inner_r, inner_r)

    canvas.rel_move_to(0, above - offset)


def draw_tree(canvas, node, depth=0):
    """Draw a branch tree depth-first from the current pen position."""
    if is_number_leaf(node):
        _invariant(node['lenl'] == node['lenr'],
                   f"number-leaf rails differ: {node['lenl']} != {node['lenr']}")
        _invariant(len(node['numbers']) < MAX_NUMBER_COUNT,
                   f"number-leaf holds {len(node['numbers'])} numbers, "
                   f"must be under {MAX_NUMBER_COUNT}")
        logger.debug("depth %d: number-leaf with %d values at %s",
                     depth, len(node['numbers']), canvas.position)
        draw_numbers(canvas, node['numbers'], node['lenr'], node['number_text'])
        return

    logger.debug("depth %d: fork %d/%d at %s",
                 depth, node['lenl'], node['lenr'], canvas.position)
    draw_fork(canvas, node['lenl'], node['lenr'], SPACING,
              capl=node['capl'], capr=node['capr'])

    left = node['left']
    if left is not None:
        dx, dy = -(node['lenl'] + BRANCH_MARGIN), node['lenl']
        canvas.rel_move_to(dx, dy)
        draw_tree(canvas, left, depth + 1)
        canvas.rel_move_to(-dx, -dy)

    right = node['right']
    if right is not None:
        dx, dy = node['lenr'] + BRANCH_MARGIN, node['lenr']
        canvas.rel_move_to(dx, dy)
        draw_tree(canvas, right, depth + 1)
        canvas.rel_move_to(-dx, -dy)


# ============================================================================
# NUMBER PATHS
# ============================================================================

def new_lane_table():
    """Empty occupancy table: LANE_COUNT lanes x (LEFT, RIGHT) level masks."""
    return [[0, 0] for _ in range(LANE_COUNT)]


def lane_is_marked(lane_table, lane, direction, level):
    return bool(lane_table[lane][direction] & (1 << level))


def mark_lane(lane_table, lane, direction, level):
    lane_table[lane][direction] |= 1 << level


def route_number(value, section, offset_y, lane_table):
    """Plan the zigzag for one encoded value.

    Returns the four (dx, dy) segment moves. Every set magnitude bit turns the
    path around. A segment heading into a lane that another motif leaves in
    the opposite direction one level further down is pushed out by SPACING.
    The last segment absorbs offset_y and any detours so all motifs of a leaf
    end on the same line. Marks added to lane_table are never removed.
    """
    left = bool(value & NUMBER_LEFT)
    accrued = offset_y
    rights = 0
    moves = []

    for level, bit in enumerate(MAGNITUDE_BITS):
        if value & bit:
            left = not left
        direction = LEFT if left else RIGHT
        opposite = RIGHT if left else LEFT
        lane = rights if left else rights + 1

        step = section
        if lane_is_marked(lane_table, lane, opposite, level + 1):
            step += SPACING
            accrued += SPACING
            logger.debug("value %#x: detour at lane %d level %d", value, lane, level)
        if bit == 1:
            step -= accrued

        moves.append((-step if left else step, step))
        mark_lane(lane_table, lane, direction, level)
        if not left:
            rights += 1

    return moves


def draw_numbers(canvas, values, baseline_len, labels):
    """Draw zigzag motifs for encoded values plus an 8-cell label row.

    Left-starting and right-starting motifs stack downwards independently,
    SPACING apart. The label row sits under the motifs; each non-empty label
    is centred at the right edge of its cell.

    The pen only returns to its start when baseline_len is a multiple of 4:
    section is baseline_len // 4, so otherwise every motif leaves the pen
    baseline_len % 4 higher and the label row twice that further left.
    """
    section = baseline_len // 4
    lane_table = new_lane_table()
    counts = {LEFT: 0, RIGHT: 0}

    for value in values:
        side = LEFT if value & NUMBER_LEFT else RIGHT
        offset_y = SPACING * counts[side]
        counts[side] += 1
        canvas.rel_move_to(0, offset_y)

        reverse_x = 0
        for dx, dy in route_number(value, section, offset_y, lane_table):
            canvas.rel_line_to(dx, dy)
            reverse_x += dx
        canvas.rel_move_to(-reverse_x, -baseline_len)

    row_drop = baseline_len + SPACING * 3
    canvas.rel_move_to(-baseline_len, row_drop)
    for cell, text in enumerate(labels):
        canvas.rel_move_to(section, 0)
        if text:
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("label %r in cell %d, %.1f wide",
                             text, cell, canvas.text_width(text))
            canvas.show_text_centered(text)
    canvas.rel_move_to(-baseline_len, -row_drop)


# ============================================================================
# STROKE GEOMETRY
# ============================================================================

def _stroke_line(stroke):
    x, y, dx, dy = stroke
    return LineString([(x, y), (x + dx, y + dy)])


def strokes_to_lines(strokes):
    """Recorded (x, y, dx, dy) strokes as a shapely MultiLineString."""
    return MultiLineString([_stroke_line(s) for s in strokes])


def stroke_bounds(strokes, scale=1.0):
    """(minx, miny, maxx, maxy) of the strokes on the scaled surface."""
    lines = strokes_to_lines(strokes)
    if scale != 1.0:
        lines = affinity.scale(lines, xfact=scale, yfact=scale, origin=(0, 0))
    return lines.bounds


def find_coincident_strokes(strokes, tolerance=1e-9):
    """Index pairs of strokes that run along each other for some length.

    Strokes that only touch or cross at a point are not reported.
    """
    lines = [_stroke_line(s) for s in strokes]
    pairs = []
    for i in range(len(lines)):
        for j in range(i + 1, len(lines)):
            shared = lines[i].intersection(lines[j])
            if shared.length > tolerance:
                pairs.append((i, j))
    return pairs


# ============================================================================
# RENDERING
# ============================================================================

def paint(canvas, tree=None, render_params=None):
    """Set up the canvas and draw the tree (the reference one by default)."""
    params = dict(DEFAULT_RENDER_PARAMS)
    if render_params:
        params.update(render_params)
    if tree is None:
        tree = build_illustration()

    canvas.set_background(params['background'], params['background_opacity'])
    canvas.set_stroke(params['line_width'], params['line_cap'], params['color'])
    canvas.set_font(params['font_size'], params['font_family'])
    canvas.set_scale(params['scale'])
    canvas.move_to(canvas.width // 2, SPACING)
    draw_tree(canvas, tree)
    return canvas


def check_strokes(canvas):
    """Log strokes that leave the surface or coincide; returns the warning count."""
    warnings = 0
    if not canvas.strokes:
        return warnings

    minx, miny, maxx, maxy = stroke_bounds(canvas.strokes, canvas.scale)
    if minx < 0 or miny < 0 or maxx > canvas.width or maxy > canvas.height:
        logger.warning("Strokes span (%g, %g)-(%g, %g), outside the %dx%d surface",
                       minx, miny, maxx, maxy, canvas.width, canvas.height)
        warnings += 1

    for i, j in find_coincident_strokes(canvas.strokes):
        logger.warning("Strokes %d and %d coincide: %s / %s",
                       i, j, canvas.strokes[i], canvas.strokes[j])
        warnings += 1
    return warnings


def render_png(out_path, tree=None, render_params=None):
    """Paint the illustration on a fresh WIDTH x HEIGHT canvas and write a PNG."""
    canvas = paint(Canvas(WIDTH, HEIGHT), tree, render_params)
    check_strokes(canvas)
    canvas.save_png(out_path)
    logger.info("Saved: %s (%d strokes, %d labels)",
                out_path, len(canvas.strokes), len(canvas.labels))
    return canvas
