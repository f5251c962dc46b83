"""
Raster images for receipt headers.

Converts a store logo to a 1-bit bitmap packed for the ESC/POS
``GS v 0`` raster command.
"""

from io import BytesIO
from pathlib import Path
from typing import Union

from PIL import Image

# Largest logo accepted, in pixels per side and in total
MAX_IMAGE_DIMENSION = 10000
MAX_IMAGE_PIXELS = 10_000_000

# 58mm paper at 203 DPI
PAPER_WIDTH_DOTS = 384


class ImageSizeError(ValueError):
    """Logo is too large to load."""

    pass


class RasterImage:
    """Packed 1-bit image: ``height`` rows of ``width_bytes`` bytes."""

    def __init__(self, width_bytes: int, height: int, data: bytes):
        self.width_bytes = width_bytes
        self.height = height
        self.data = data


class LogoProcessor:
    """Prepare logos for thermal printing.

    Args:
        max_width: Widest logo in dots; wider images are scaled down
        threshold: Grayscale threshold for black/white conversion (0-255)
    """

    def __init__(self, max_width: int = PAPER_WIDTH_DOTS, threshold: int = 128):
        self.max_width = max_width
        self.threshold = threshold

    def load(self, source: Union[str, Path, bytes, Image.Image]) -> Image.Image:
        """Open a logo given as a file path, encoded bytes or a PIL image.

        Only the header is read before the size check, so an oversized
        file is refused without decoding its pixels.

        Raises:
            ImageSizeError: If the logo is larger than a receipt logo can be
            ValueError: For any other kind of source
            OSError: If the file is missing or not an image
        """
        if isinstance(source, bytes):
            source = BytesIO(source)
        if isinstance(source, (str, Path, BytesIO)):
            logo = Image.open(source)
        elif isinstance(source, Image.Image):
            logo = source
        else:
            raise ValueError(f"Can't load a logo from {type(source).__name__}")

        width, height = logo.size
        if max(width, height) > MAX_IMAGE_DIMENSION or width * height > MAX_IMAGE_PIXELS:
            raise ImageSizeError(f"Logo is {width}x{height} pixels, too large to print")
        return logo

    def prepare(self, image: Image.Image) -> Image.Image:
        """Scale down to fit the paper and threshold to 1-bit."""
        if image.mode in ("RGBA", "LA") or "transparency" in image.info:
            # Transparent areas print as paper, not black
            background = Image.new("RGBA", image.size, (255, 255, 255, 255))
            image = Image.alpha_composite(background, image.convert("RGBA"))

        image = image.convert("L")

        if image.width > self.max_width:
            ratio = self.max_width / image.width
            image = image.resize(
                (self.max_width, max(1, int(image.height * ratio))),
                Image.Resampling.LANCZOS,
            )

        return image.point(lambda x: 0 if x < self.threshold else 255, mode="1")

    def to_raster(self, image: Image.Image) -> RasterImage:
        """
        Pack a 1-bit image into raster rows.

        MSB is the leftmost dot. Black pixels are 1, white are 0; rows are
        padded with white to a whole byte.
        """
        if image.mode != "1":
            image = image.convert("1")

        width_bytes = (image.width + 7) // 8
        data = bytearray()

        for y in range(image.height):
            row = bytearray(width_bytes)
            for x in range(image.width):
                # In PIL "1" mode, 0 is black
                if image.getpixel((x, y)) == 0:
                    row[x // 8] |= 0x80 >> (x % 8)
            data += row

        return RasterImage(width_bytes, image.height, bytes(data))

    def process(self, source: Union[str, Path, bytes, Image.Image]) -> RasterImage:
        """Load, prepare and pack a logo."""
        return self.to_raster(self.prepare(self.load(source)))
