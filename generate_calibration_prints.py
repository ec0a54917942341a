#!/usr/bin/env python3
"""
Generate the printable chessboard used for fisheye calibration.

The inner corner count must match the --chessboard setting passed to
main.py (default 6x9).

Usage:
    python generate_calibration_prints.py
    python generate_calibration_prints.py --chessboard 9x6 --square-mm 20

Output:
    calibration_prints/chessboard_<cols>x<rows>_<square>mm.png / .pdf
"""

import os
import argparse

import numpy as np
import cv2
from PIL import Image

from defisheye import InvalidConfiguration, parse_pattern_size
from defisheye.checkerboard import render_checkerboard


def parse_chessboard(value: str):
    try:
        return parse_pattern_size(value)
    except InvalidConfiguration as e:
        raise argparse.ArgumentTypeError(str(e))

# Output directory
OUTPUT_DIR = "calibration_prints"

# Page sizes in mm (A4)
A4_WIDTH_MM = 210
A4_HEIGHT_MM = 297

# DPI for PDF generation
DPI = 300
MM_TO_INCH = 1 / 25.4
A4_WIDTH_PX = int(A4_WIDTH_MM * MM_TO_INCH * DPI)
A4_HEIGHT_PX = int(A4_HEIGHT_MM * MM_TO_INCH * DPI)


def mm_to_px(mm: float) -> int:
    """Convert millimeters to pixels at our DPI."""
    return int(mm * MM_TO_INCH * DPI)


def generate_chessboard(corners_x: int, corners_y: int, square_size_mm: float,
                        output_dir: str = OUTPUT_DIR) -> str:
    """
    Render a chessboard with the given inner corners centred on an A4 page.

    Returns:
        Path of the PNG file.
    """
    square_size_px = mm_to_px(square_size_mm)
    board = render_checkerboard(corners_x, corners_y, square_size_px)
    board_height_px, board_width_px = board.shape

    if board_width_px > A4_WIDTH_PX - mm_to_px(20) or board_height_px > A4_HEIGHT_PX - mm_to_px(40):
        raise ValueError(f"{corners_x}x{corners_y} board with {square_size_mm}mm squares does not fit on A4")

    page = np.ones((A4_HEIGHT_PX, A4_WIDTH_PX, 3), dtype=np.uint8) * 255

    # Center board on page
    x_offset = (A4_WIDTH_PX - board_width_px) // 2
    y_offset = mm_to_px(25)  # Top margin for title
    page[y_offset:y_offset + board_height_px, x_offset:x_offset + board_width_px] = \
        cv2.cvtColor(board, cv2.COLOR_GRAY2BGR)

    title = "Chessboard - Fisheye Calibration"
    cv2.putText(page, title, (mm_to_px(15), mm_to_px(12)),
                cv2.FONT_HERSHEY_SIMPLEX, 0.8, (0, 0, 0), 2)

    instructions = [
        "- Print at 100% scale (no fit-to-page)",
        "- Mount on a flat, rigid surface",
        "- Photograph it across the whole field of view, including the edges",
        f"- Run main.py with --chessboard {corners_x}x{corners_y}",
    ]
    y = y_offset + board_height_px + mm_to_px(15)
    for line in instructions:
        cv2.putText(page, line, (mm_to_px(15), y),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.5, (80, 80, 80), 1)
        y += mm_to_px(7)

    info = f"{corners_x}x{corners_y} internal corners | {square_size_mm:g}mm squares"
    cv2.putText(page, info, (mm_to_px(15), A4_HEIGHT_PX - mm_to_px(8)),
                cv2.FONT_HERSHEY_SIMPLEX, 0.5, (100, 100, 100), 1)

    os.makedirs(output_dir, exist_ok=True)
    output_path = os.path.join(output_dir, f"chessboard_{corners_x}x{corners_y}_{square_size_mm:g}mm.png")
    if not cv2.imwrite(output_path, page):
        raise OSError(f"Failed to write {output_path}")
    print(f"  Created: {output_path}")
    return output_path


def convert_to_pdf(png_path: str) -> str:
    """Convert a PNG page to a 300 DPI PDF with Pillow."""
    pdf_path = os.path.splitext(png_path)[0] + '.pdf'
    with Image.open(png_path) as img:
        img.convert('RGB').save(pdf_path, 'PDF', resolution=float(DPI))
    print(f"  Created: {pdf_path}")
    return pdf_path


def main():
    """Generate the chessboard printable."""
    parser = argparse.ArgumentParser(description="Generate a printable calibration chessboard")
    parser.add_argument("--chessboard", type=parse_chessboard, default=(6, 9),
                        help="Inner corners as COLSxROWS (default: 6x9)")
    parser.add_argument("--square-mm", type=float, default=20.0,
                        help="Square size in millimeters (default: 20)")
    parser.add_argument("--output-dir", default=OUTPUT_DIR,
                        help=f"Output directory (default: {OUTPUT_DIR})")
    args = parser.parse_args()

    print("=" * 60)
    print("  defisheye Calibration Chessboard Generator")
    print("=" * 60)

    corners_x, corners_y = args.chessboard
    png_path = generate_chessboard(corners_x, corners_y, args.square_mm, args.output_dir)
    convert_to_pdf(png_path)

    print("\nPrinting instructions:")
    print("  1. Print at 100% scale (no 'fit to page')")
    print("  2. Use matte paper for less glare")
    print("  3. Verify square size with a ruler after printing")


if __name__ == "__main__":
    main()
