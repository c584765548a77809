"""Utils for candlelight."""

from importlib.resources import files

pkg_name = 'candlelight'
data_files = files(pkg_name) / 'data'


def return_none(*args, **kwargs):
    """
    An empty function that returns None no matter the arguments.
    Often used as a "do nothing" general callback function.
    """
    return None


# --------------------------------------------------------------------------------------
# Constants


class HandLandmark:
    WRIST = 0
    THUMB_CMC = 1
    THUMB_MCP = 2
    THUMB_IP = 3
    THUMB_TIP = 4
    INDEX_FINGER_MCP = 5
    INDEX_FINGER_PIP = 6
    INDEX_FINGER_DIP = 7
    INDEX_FINGER_TIP = 8
    MIDDLE_FINGER_MCP = 9
    MIDDLE_FINGER_PIP = 10
    MIDDLE_FINGER_DIP = 11
    MIDDLE_FINGER_TIP = 12
    RING_FINGER_MCP = 13
    RING_FINGER_PIP = 14
    RING_FINGER_DIP = 15
    RING_FINGER_TIP = 16
    PINKY_MCP = 17
    PINKY_PIP = 18
    PINKY_DIP = 19
    PINKY_TIP = 20


# The one landmark the match follows
FINGERTIP = HandLandmark.INDEX_FINGER_TIP


# --------------------------------------------------------------------------------------
# String utils


def format_float(value, ndigits=4):
    return f"{value:.{ndigits}f}"


def format_label_xy(label, x, y, *, label_width=15, coord_width=8, ndigits=1):
    """
    Format a label and screen coordinates with customizable widths.

    Args:
        label (str): The label for the coordinates (e.g., "Match:").
        x, y (float): The coordinates to format.
        label_width (int): The width of the label field.
        coord_width (int): The width of the coordinate fields.
        ndigits (int): Number of decimals to show.

    Returns:
        str: The formatted string.

    >>> format_label_xy('Match:', 1.25, 3.4)
    'Match:          x=     1.2 y=     3.4'
    >>> format_label_xy('Match:', 12, 3, label_width=7, coord_width=4, ndigits=0)
    'Match:  x=  12 y=   3'
    """
    x, y = format_float(x, ndigits), format_float(y, ndigits)
    return f"{label:<{label_width}} x={x:>{coord_width}} y={y:>{coord_width}}"
