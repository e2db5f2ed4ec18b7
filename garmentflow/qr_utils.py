"""Rendering helpers for bundle QR labels.

A bundle QR encodes nothing but the plain code id, so scanners at any
checkpoint can decode it without knowing the schema.  Images are rendered in
memory; the API streams them back instead of keeping files on disk.
"""

from io import BytesIO

import openpyxl
import qrcode
import qrcode.image.svg
from openpyxl.styles import Font

LABEL_HEADERS = ["code", "copy", "work_order", "size", "bundle_no", "bundle_qty", "status"]


def make_qr_png(payload: str, box_size: int = 10, border: int = 4) -> bytes:
    """Render ``payload`` as a PNG and return the raw bytes."""

    qr = qrcode.QRCode(version=1, box_size=box_size, border=border)
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def make_qr_svg(payload: str) -> bytes:
    """Render ``payload`` as an SVG document and return the raw bytes."""

    img = qrcode.make(payload, image_factory=qrcode.image.svg.SvgImage)
    buf = BytesIO()
    img.save(buf)
    return buf.getvalue()


def build_label_workbook(codes, copies: int = 1) -> bytes:
    """Build an ``.xlsx`` print sheet with one row per label.

    Each code is repeated ``copies`` times so a print run can put several
    labels on the same bundle.
    """

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "labels"
    ws.append(LABEL_HEADERS)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for code in codes:
        for copy_no in range(1, copies + 1):
            ws.append([
                code.id,
                copy_no,
                code.work_order_id or "",
                code.size or "",
                code.bundle_no,
                code.bundle_qty,
                code.status,
            ])

    ws.column_dimensions["A"].width = 32
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()
