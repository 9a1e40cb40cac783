"""Quote card rendering with Pillow."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from PIL import Image, ImageDraw, ImageFont

from ..errors import GenerationError
from .models import ContentItem, Post

_logger = logging.getLogger("scheduler")

VIDEO_SUFFIXES = frozenset({".mp4", ".mov", ".m4v"})

FONT_PATHS = [
    # macOS
    "/System/Library/Fonts/Supplemental/Georgia.ttf",
    "/System/Library/Fonts/Helvetica.ttc",
    "/Library/Fonts/Arial.ttf",
    # Linux
    "/usr/share/fonts/truetype/dejavu/DejaVuSerif.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    # Windows
    "C:/Windows/Fonts/georgia.ttf",
    "C:/Windows/Fonts/arial.ttf",
]


@dataclass
class PreparedMedia:
    """Media available to the fan-out for one post."""

    image: Optional[Path] = None
    video: Optional[Path] = None


def hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
    hex_color = hex_color.lstrip("#")
    return tuple(int(hex_color[i:i + 2], 16) for i in (0, 2, 4))


def wrap_text(text: str, font: ImageFont.ImageFont, max_width: int) -> list[str]:
    """Greedy word wrap; paragraph breaks are kept as empty lines."""
    lines: list[str] = []
    for paragraph in text.split("\n"):
        current: list[str] = []
        for word in paragraph.split():
            candidate = " ".join(current + [word])
            left, _, right, _ = font.getbbox(candidate)
            if right - left <= max_width or not current:
                current.append(word)
            else:
                lines.append(" ".join(current))
                current = [word]
        lines.append(" ".join(current))
    while lines and not lines[-1]:
        lines.pop()
    return lines


class MediaGenerator(ABC):
    """Renders an image for a content item."""

    def __init__(self, output_dir: Path, width: int = 1080, height: int = 1350):
        self.output_dir = Path(output_dir)
        self.width = width
        self.height = height

    @abstractmethod
    def render(self, item: ContentItem) -> Image.Image:
        ...

    def _output_path(self, post: Post) -> Path:
        return self.output_dir / f"{post.id}.jpg"

    def _render_to_file(self, post: Post) -> Path:
        try:
            image = self.render(post.to_content_item())
            path = self._output_path(post)
            path.parent.mkdir(parents=True, exist_ok=True)
            image.convert("RGB").save(path, "JPEG", quality=92)
        except (OSError, ValueError) as e:
            raise GenerationError(f"{type(self).__name__} failed: {e}") from e
        return path

    async def generate(self, post: Post) -> Path:
        """Render off the event loop and return the JPEG path.

        Raises:
            GenerationError: Rendering or saving failed.
        """
        loop = asyncio.get_running_loop()
        path = await loop.run_in_executor(None, self._render_to_file, post)
        _logger.info(f"{type(self).__name__} rendered {path.name}")
        return path


class QuoteCardGenerator(MediaGenerator):
    """Gradient card with the entry text, citation and site footer."""

    def __init__(
        self,
        output_dir: Path,
        width: int = 1080,
        height: int = 1350,
        background_start: str = "#1f2a44",
        background_end: str = "#4b2c5e",
        text_color: str = "#ffffff",
        fonts_dir: Optional[Path] = None,
        footer: str = "wisdombook.life",
    ):
        super().__init__(output_dir, width, height)
        self.background_start = background_start
        self.background_end = background_end
        self.text_color = text_color
        self.fonts_dir = fonts_dir
        self.footer = footer
        self._font_cache: dict[int, ImageFont.FreeTypeFont] = {}

    def _get_font(self, size: int) -> ImageFont.FreeTypeFont:
        if size in self._font_cache:
            return self._font_cache[size]

        candidates: list[str] = []
        if self.fonts_dir and self.fonts_dir.exists():
            candidates.extend(str(p) for p in sorted(self.fonts_dir.glob("*.tt[fc]")))
        candidates.extend(FONT_PATHS)

        font = None
        for path in candidates:
            try:
                font = ImageFont.truetype(path, size)
                break
            except OSError:
                continue
        if font is None:
            # No TrueType font on this machine
            raise OSError("No usable TrueType font found")

        self._font_cache[size] = font
        return font

    def _background(self) -> Image.Image:
        """Vertical gradient."""
        img = Image.new("RGB", (self.width, self.height))
        draw = ImageDraw.Draw(img)
        r1, g1, b1 = hex_to_rgb(self.background_start)
        r2, g2, b2 = hex_to_rgb(self.background_end)
        for y in range(self.height):
            t = y / self.height
            color = (int(r1 + (r2 - r1) * t), int(g1 + (g2 - g1) * t), int(b1 + (b2 - b1) * t))
            draw.line([(0, y), (self.width, y)], fill=color)
        return img

    def _fit_text(self, text: str, max_width: int, max_height: int) -> tuple[ImageFont.FreeTypeFont, list[str], int]:
        """Largest font size (64 down to 28) whose wrapped text fits."""
        for size in range(64, 27, -4):
            font = self._get_font(size)
            lines = wrap_text(text, font, max_width)
            line_height = int(size * 1.4)
            if len(lines) * line_height <= max_height:
                return font, lines, line_height
        font = self._get_font(28)
        line_height = int(28 * 1.4)
        lines = wrap_text(text, font, max_width)[: max_height // line_height]
        return font, lines, line_height

    def render(self, item: ContentItem) -> Image.Image:
        img = self._background()
        draw = ImageDraw.Draw(img)
        color = hex_to_rgb(self.text_color)

        margin = int(self.width * 0.1)
        max_width = self.width - 2 * margin
        text_area = int(self.height * 0.65)

        font, lines, line_height = self._fit_text(item.body, max_width, text_area)
        block_height = len(lines) * line_height
        y = (self.height - block_height) // 2 - int(self.height * 0.05)

        for line in lines:
            left, _, right, _ = font.getbbox(line)
            draw.text((margin + (max_width - (right - left)) // 2, y), line, font=font, fill=color)
            y += line_height

        if item.citation:
            cite_font = self._get_font(36)
            cite = f"- {item.citation}"
            left, _, right, _ = cite_font.getbbox(cite)
            draw.text((margin + (max_width - (right - left)) // 2, y + 40), cite, font=cite_font, fill=color)

        footer_font = self._get_font(28)
        left, _, right, _ = footer_font.getbbox(self.footer)
        draw.text(
            ((self.width - (right - left)) // 2, self.height - margin),
            self.footer,
            font=footer_font,
            fill=color,
        )
        return img


class PlainCardGenerator(MediaGenerator):
    """Solid background with the text in Pillow's built-in font.

    Needs no font files; used when the quote card cannot be rendered.
    """

    def __init__(self, output_dir: Path, width: int = 1080, height: int = 1350, background: str = "#222222"):
        super().__init__(output_dir, width, height)
        self.background = background

    def _output_path(self, post: Post) -> Path:
        return self.output_dir / f"{post.id}_plain.jpg"

    def render(self, item: ContentItem) -> Image.Image:
        img = Image.new("RGB", (self.width, self.height), hex_to_rgb(self.background))
        draw = ImageDraw.Draw(img)
        font = ImageFont.load_default()

        margin = int(self.width * 0.08)
        text = item.body if not item.citation else f"{item.body}\n\n- {item.citation}"
        lines = wrap_text(text, font, self.width - 2 * margin)
        _, top, _, bottom = font.getbbox("Ag")
        line_height = int((bottom - top) * 1.6) or 16

        y = max(margin, (self.height - len(lines) * line_height) // 2)
        for line in lines:
            draw.text((margin, y), line, font=font, fill=(255, 255, 255))
            y += line_height
        return img


async def prepare_media(
    post: Post,
    primary: MediaGenerator,
    fallback: Optional[MediaGenerator] = None,
) -> PreparedMedia:
    """Resolve the media for a post.

    A queued post may carry its own image or video. Otherwise an image is
    rendered with the primary generator, then the fallback.

    Raises:
        GenerationError: Both generators failed.
    """
    media = PreparedMedia()
    if post.media_path is not None and post.media_path.exists():
        if post.media_path.suffix.lower() in VIDEO_SUFFIXES:
            media.video = post.media_path
        else:
            media.image = post.media_path
            return media

    try:
        media.image = await primary.generate(post)
    except GenerationError as e:
        if fallback is None:
            if media.video is None:
                raise
            return media
        _logger.warning(f"Primary media generation failed, using fallback: {e}")
        try:
            media.image = await fallback.generate(post)
        except GenerationError:
            if media.video is None:
                raise
            _logger.warning("No image for this post; continuing with the video only")
    return media
