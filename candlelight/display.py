"""Display utilities: drawing the camera feed, the cake and the match."""

import cv2
import numpy as np
from typing import Iterable, Optional, Tuple, Union

from candlelight.audio import AudioStatus
from candlelight.candle import CandleState
from candlelight.geometry import Rect, ignition_zone
from candlelight.layout import Layout
from candlelight.tracking import MatchPosition
from candlelight.util import format_float, format_label_xy

# -------------------------------------------------------------------------------
# Types
# -------------------------------------------------------------------------------

Color = Union[Tuple[int, int, int], Tuple[int, int, int, int]]  # BGR or BGRA

BACKGROUND = (39, 24, 17)
WHITE = (255, 255, 255)
GREY = (175, 175, 175)
RED = (68, 68, 239)
GREEN = (128, 222, 74)
YELLOW = (71, 224, 253)
FLAME = (0, 165, 255)
CAKE = (193, 182, 255)
FROSTING = (245, 240, 255)
CANDLE = (230, 216, 173)

# -------------------------------------------------------------------------------
# Screen drawing functions
# -------------------------------------------------------------------------------


def display_lines_on_image(
    img: np.ndarray,
    lines: Iterable[Tuple[str, Color]],
    *,
    font=cv2.FONT_HERSHEY_SIMPLEX,
    font_scale: float = 0.55,
    thickness: int = 2,
    x_pos=10,
    y_pos=30,
    y_increment=28,
    bg_color: Color = (60, 60, 60, 160),  # Dark grey, semi-transparent (BGR + alpha)
):
    """
    Display lines of text on the image with a semi-transparent background.

    Args:
        img: The image to draw on
        lines: (text, color) pairs
        font: Font type to use
        font_scale: Size of the font
        thickness: Line thickness of text
        x_pos: Starting x position for text
        y_pos: Starting y position for text
        y_increment: Vertical space between lines
        bg_color: Background color (BGR + alpha) where alpha is 0-255
    """
    lines = [(text, color) for text, color in lines if text]
    if not lines:
        return img

    overlay = img.copy()

    if len(bg_color) == 4:
        bg_rgb = bg_color[:3]
        alpha = bg_color[3] / 255.0
    else:
        bg_rgb = bg_color
        alpha = 0.5

    padding = 5
    for idx, (text, _) in enumerate(lines):
        (text_width, text_height), _ = cv2.getTextSize(
            text, font, font_scale, thickness
        )
        cv2.rectangle(
            overlay,
            (x_pos - padding, y_pos + idx * y_increment - text_height - padding),
            (x_pos + text_width + padding, y_pos + idx * y_increment + padding),
            bg_rgb,
            -1,
        )

    cv2.addWeighted(overlay, alpha, img, 1 - alpha, 0, img)

    for idx, (text, color) in enumerate(lines):
        cv2.putText(
            img,
            text,
            (x_pos, y_pos + idx * y_increment),
            font,
            font_scale,
            color,
            thickness,
        )
    return img


def _pt(x, y):
    return int(round(x)), int(round(y))


def draw_dashed_rectangle(img, top_left, bottom_right, color, *, dash=8, thickness=2):
    """Draw a rectangle outline made of dashes."""
    (x1, y1), (x2, y2) = _pt(*top_left), _pt(*bottom_right)
    for start, end, step in (
        ((x1, y1), (x2, y1), (dash, 0)),
        ((x1, y2), (x2, y2), (dash, 0)),
        ((x1, y1), (x1, y2), (0, dash)),
        ((x2, y1), (x2, y2), (0, dash)),
    ):
        length = max(abs(end[0] - start[0]), abs(end[1] - start[1]))
        for offset in range(0, length, 2 * dash):
            a = (start[0] + step[0] * offset // dash, start[1] + step[1] * offset // dash)
            b = (
                min(a[0] + step[0], end[0]) if step[0] else a[0],
                min(a[1] + step[1], end[1]) if step[1] else a[1],
            )
            cv2.line(img, a, b, color, thickness)
    return img


def draw_cake(img: np.ndarray, rect: Rect, candle_state: CandleState):
    """
    Draw the cake panel: a white card with a cake, a candle, and (if lit) its flame.
    """
    cv2.rectangle(img, _pt(rect.left, rect.top), _pt(rect.right, rect.bottom), WHITE, -1)

    cx = rect.left + rect.width / 2
    cake_top = rect.top + rect.height * 0.55
    cake_left = rect.left + rect.width * 0.15
    cake_right = rect.right - rect.width * 0.15
    cake_bottom = rect.bottom - rect.height * 0.08
    cv2.rectangle(img, _pt(cake_left, cake_top), _pt(cake_right, cake_bottom), CAKE, -1)
    cv2.rectangle(
        img,
        _pt(cake_left, cake_top),
        _pt(cake_right, cake_top + rect.height * 0.06),
        FROSTING,
        -1,
    )

    candle_half_width = rect.width * 0.025
    candle_top = rect.top + rect.height * 0.28
    cv2.rectangle(
        img,
        _pt(cx - candle_half_width, candle_top),
        _pt(cx + candle_half_width, cake_top),
        CANDLE,
        -1,
    )
    cv2.line(
        img, _pt(cx, candle_top), _pt(cx, candle_top - rect.height * 0.03), (40, 40, 40), 2
    )

    if candle_state is CandleState.LIT:
        flame_center = _pt(cx, candle_top - rect.height * 0.08)
        axes = _pt(rect.width * 0.025, rect.height * 0.06)
        cv2.ellipse(img, flame_center, axes, 0, 0, 360, FLAME, -1, cv2.LINE_AA)
        inner_axes = _pt(axes[0] / 2, axes[1] / 2)
        cv2.ellipse(img, flame_center, inner_axes, 0, 0, 360, YELLOW, -1, cv2.LINE_AA)
    return img


def draw_ignition_zone(img: np.ndarray, rect: Rect, *, label="Touch here to relight"):
    """Outline the ignition zone of ``rect``, so the user knows where to go."""
    zone = ignition_zone(rect)
    draw_dashed_rectangle(img, (zone.left, zone.top), (zone.right, zone.bottom), RED)
    font, font_scale, thickness = cv2.FONT_HERSHEY_SIMPLEX, 0.45, 1
    (text_width, text_height), _ = cv2.getTextSize(label, font, font_scale, thickness)
    x = (zone.left + zone.right - text_width) / 2
    y = (zone.top + zone.bottom + text_height) / 2
    cv2.putText(img, label, _pt(x, y), font, font_scale, RED, thickness, cv2.LINE_AA)
    return img


def draw_match(img: np.ndarray, match_position: MatchPosition, *, radius=14):
    """Draw the match head (a glowing flame) at the match position, if visible."""
    if not match_position.is_visible:
        return img
    center = _pt(match_position.x, match_position.y)
    overlay = img.copy()
    cv2.circle(overlay, center, radius * 2, YELLOW, -1, cv2.LINE_AA)
    cv2.addWeighted(overlay, 0.35, img, 0.65, 0, img)
    cv2.circle(img, center, radius, FLAME, -1, cv2.LINE_AA)
    cv2.circle(img, center, radius // 2, YELLOW, -1, cv2.LINE_AA)
    return img


def status_lines(candle_state: CandleState, audio_status: AudioStatus):
    """The status and instruction lines shown under the cake."""
    if candle_state is CandleState.LIT:
        lines = [
            ("Candles are currently: LIT!", GREEN),
            ("Blow into the microphone to put them out!", GREY),
        ]
    else:
        lines = [
            ("Candles are currently: OUT!", RED),
            ("Bring the match to the top of the cake!", GREY),
        ]
    if audio_status is not AudioStatus.LISTENING:
        lines.append(("Microphone error", RED))
    return lines


def debug_lines(match_position: MatchPosition, *, volume: float = 0.0, tracking=''):
    """Raw values, for when the candle doesn't behave as expected."""
    if match_position.is_visible:
        match_line = format_label_xy('Match:', match_position.x, match_position.y)
    else:
        match_line = 'Match:          (hidden)'
    return [
        (match_line, WHITE),
        (f"{'Volume (RMS):':<15} {format_float(volume)}", WHITE),
        (f"{'Tracking:':<15} {tracking}", WHITE),
    ]


def draw_on_screen(
    layout: Layout,
    frame: Optional[np.ndarray],
    candle_state: CandleState,
    match_position: MatchPosition,
    audio_status: AudioStatus,
    *,
    title: str = "Birthday Cake",
    subtitle: str = "Move your hand to guide the match",
    debug_info: Optional[Iterable[Tuple[str, Color]]] = None,
):
    """
    Draw the whole window: camera feed, cake, ignition zone, match and status.

    Args:
        debug_info: Extra (text, color) lines drawn over the camera feed.

    Returns:
        img: The canvas
    """
    img = np.zeros((layout.canvas_height, layout.canvas_width, 3), dtype=np.uint8)
    img[:] = BACKGROUND

    cv2.putText(img, title, (20, 38), cv2.FONT_HERSHEY_SIMPLEX, 1.0, YELLOW, 2)
    video = layout.video_rect
    if frame is not None:
        h, w = frame.shape[:2]
        if (w, h) != (video.width, video.height):
            frame = cv2.resize(frame, (int(video.width), int(video.height)))
        top, left = int(video.top), int(video.left)
        img[top : top + int(video.height), left : left + int(video.width)] = frame
    cv2.putText(
        img,
        subtitle,
        _pt(video.left, video.bottom + 22),
        cv2.FONT_HERSHEY_SIMPLEX,
        0.5,
        WHITE,
        1,
    )

    draw_cake(img, layout.cake_rect, candle_state)
    if candle_state is CandleState.UNLIT:
        draw_ignition_zone(img, layout.cake_rect)

    display_lines_on_image(
        img,
        status_lines(candle_state, audio_status),
        x_pos=int(layout.cake_rect.left),
        y_pos=int(layout.cake_rect.bottom) + 30,
    )
    if debug_info:
        display_lines_on_image(
            img,
            debug_info,
            font_scale=0.45,
            thickness=1,
            x_pos=int(video.left) + 10,
            y_pos=int(video.top) + 25,
            y_increment=22,
        )
    draw_match(img, match_position)
    return img
