from typing import List, Optional, Tuple
import qrcode
from qrcode.exceptions import DataOverflowError

# Light modules are painted so the code reads correctly on dark terminals
_GLYPHS = {
    (True, True): "█",
    (True, False): "▀",
    (False, True): "▄",
    (False, False): " ",
}


def _build_matrix(data: str, border: int) -> List[List[bool]]:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=1,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)
    return qr.get_matrix()


def _half_block_text(matrix: List[List[bool]]) -> str:
    """Two matrix rows per text line using half block glyphs."""
    lines = []
    for y in range(0, len(matrix), 2):
        top = matrix[y]
        bottom = matrix[y + 1] if y + 1 < len(matrix) else [True] * len(top)
        lines.append("".join(_GLYPHS[(not t, not b)] for t, b in zip(top, bottom)))
    return "\n".join(lines)


def generate_qr_ascii(data: str, console_width: int = 80) -> Tuple[str, int, Optional[str]]:
    """
    Renders a share link as a terminal QR code.
    Returns (text, width, mode) where mode is "double" (full quiet zone, kept
    clear of the console edge), "compact" (minimal border) or None with an
    error message in text when nothing fits.
    """
    if not data or not data.strip():
        return "QR Error: nothing to encode", 0, None

    try:
        double = _build_matrix(data, border=2)
        double_width = len(double[0])
        if double_width <= console_width - 10:
            return _half_block_text(double), double_width, "double"

        compact = _build_matrix(data, border=1)
        compact_width = len(compact[0])
        if compact_width <= console_width:
            return _half_block_text(compact), compact_width, "compact"
    except DataOverflowError:
        return "QR Error: link too long for a QR code", 0, None

    return f"QR Error: terminal too narrow ({console_width} < {compact_width} columns)", 0, None
