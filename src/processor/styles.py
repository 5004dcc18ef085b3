"""
스타일 → 변환 지시문 매핑.
입력이 같으면 항상 같은 지시문을 반환하는 순수 함수만 둔다.
"""

from enum import StrEnum


class Style(StrEnum):
    SIMPSONS = "simpsons"
    STUDIO_GHIBLI = "studio-ghibli"
    FAMILY_GUY = "family-guy"
    DISNEY = "disney"
    ANIME = "anime"
    COMIC_BOOK = "comic-book"
    SOUTH_PARK = "south-park"


STYLE_NAMES = {
    Style.SIMPSONS: "The Simpsons cartoon",
    Style.STUDIO_GHIBLI: "Studio Ghibli animation",
    Style.FAMILY_GUY: "Family Guy cartoon",
    Style.DISNEY: "classic Disney animation",
    Style.ANIME: "Japanese anime",
    Style.COMIC_BOOK: "American comic book",
    Style.SOUTH_PARK: "South Park cutout animation",
}

GENERIC_STYLE_NAME = "clean, colorful cartoon"

_TEMPLATE = (
    "Transform this photograph into a high-quality {name} artwork. "
    "Keep the exact likeness of the person: face shape, hairstyle, eyebrows, "
    "nose, mouth and expression. Preserve their skin tone and identity without "
    "alteration. Keep the same clothing, accessories and background theme. "
    "Use the characteristic {name} aesthetic and keep the original composition."
)


def known_style(style: str | None) -> Style | None:
    if not style:
        return None
    try:
        return Style(style.strip().lower())
    except ValueError:
        return None


def build_instruction(style: str | None) -> str:
    """스타일 ID로 지시문을 만든다. 모르는 스타일은 일반 카툰 지시문으로 대체."""
    matched = known_style(style)
    name = STYLE_NAMES[matched] if matched else GENERIC_STYLE_NAME
    return _TEMPLATE.format(name=name)
