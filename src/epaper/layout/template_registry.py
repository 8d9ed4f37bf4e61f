"""
Template Registry Module

This module holds the named newspaper layout templates. A template is a page
size, margins and an ordered list of sections. Section rectangles use a
top-left origin in PDF points, the way an editor measures a printed page.

Templates are immutable values. The registry validates each template when it
is registered and never lets an existing id be replaced, so an edition can
always be regenerated from its recorded template id.
"""

import logging
from dataclasses import dataclass
from typing import List, Dict, Any, Optional, Tuple

from epaper.errors import InvalidTemplate, TemplateNotFound

logger = logging.getLogger(__name__)

SECTION_TYPES = ("header", "breaking", "main", "secondary", "sidebar", "footer")
STATIC_SECTION_TYPES = ("header", "footer")
LAYOUT_STRATEGIES = ("single", "double", "triple", "grid")


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def overlaps(self, other: "Rect") -> bool:
        """True if the two rectangles share any area. Touching edges do not count."""
        return (self.x < other.right and other.x < self.right
                and self.y < other.bottom and other.y < self.bottom)

    def contains(self, other: "Rect") -> bool:
        return (other.x >= self.x and other.y >= self.y
                and other.right <= self.right and other.bottom <= self.bottom)


@dataclass(frozen=True)
class Margins:
    top: float
    bottom: float
    left: float
    right: float


@dataclass(frozen=True)
class PageSize:
    width: float
    height: float


@dataclass(frozen=True)
class Section:
    type: str
    position: Rect
    max_articles: int
    layout: str = "single"

    @property
    def is_static(self) -> bool:
        """Header and footer carry masthead content, never articles."""
        return self.type in STATIC_SECTION_TYPES


@dataclass(frozen=True)
class Template:
    id: str
    name: str
    description: str
    page_size: PageSize
    margins: Margins
    sections: Tuple[Section, ...]

    @property
    def content_box(self) -> Rect:
        return Rect(
            self.margins.left,
            self.margins.top,
            self.page_size.width - self.margins.left - self.margins.right,
            self.page_size.height - self.margins.top - self.margins.bottom,
        )

    def find_section(self, section_type: str) -> Optional[Section]:
        for section in self.sections:
            if section.type == section_type:
                return section
        return None

    @property
    def total_capacity(self) -> int:
        return sum(section.max_articles for section in self.sections)


def validate_template(template: Template) -> None:
    """
    Check the structural invariants of a template.

    Raises:
        InvalidTemplate: The template is malformed.
    """
    if not template.id:
        raise InvalidTemplate("Template id must not be empty")
    if template.page_size.width <= 0 or template.page_size.height <= 0:
        raise InvalidTemplate(f"Template '{template.id}' has a non-positive page size")

    box = template.content_box
    if box.width <= 0 or box.height <= 0:
        raise InvalidTemplate(f"Template '{template.id}' margins leave no printable area")

    seen_types = set()
    for section in template.sections:
        where = f"Template '{template.id}' section '{section.type}'"
        if section.type not in SECTION_TYPES:
            raise InvalidTemplate(f"{where}: unknown section type")
        if section.type in seen_types:
            raise InvalidTemplate(f"{where}: section type declared twice")
        seen_types.add(section.type)
        if section.layout not in LAYOUT_STRATEGIES:
            raise InvalidTemplate(f"{where}: unknown layout strategy '{section.layout}'")
        if section.max_articles < 0:
            raise InvalidTemplate(f"{where}: negative article capacity")
        if section.is_static and section.max_articles != 0:
            raise InvalidTemplate(f"{where}: header and footer sections cannot hold articles")
        if section.position.width <= 0 or section.position.height <= 0:
            raise InvalidTemplate(f"{where}: empty rectangle")
        if not box.contains(section.position):
            raise InvalidTemplate(f"{where}: rectangle lies outside the page margins")

    sections = template.sections
    for i, first in enumerate(sections):
        for second in sections[i + 1:]:
            if first.position.overlaps(second.position):
                raise InvalidTemplate(
                    f"Template '{template.id}': sections '{first.type}' and '{second.type}' overlap"
                )


def template_from_dict(template_id: str, data: Dict[str, Any]) -> Template:
    """
    Build a template from configuration data.

    Expected shape (YAML)::

        id: tabloid
        name: Tabloid
        description: ...
        page_size: {width: 420, height: 595}
        margins: {top: 20, bottom: 20, left: 20, right: 20}
        sections:
          - {type: header, x: 20, y: 20, width: 380, height: 50, max_articles: 0}
          - {type: main, x: 20, y: 80, width: 380, height: 400, max_articles: 3, layout: double}
    """
    try:
        page = data["page_size"]
        margins = data["margins"]
        sections = tuple(
            Section(
                type=str(item["type"]),
                position=Rect(float(item["x"]), float(item["y"]), float(item["width"]), float(item["height"])),
                max_articles=int(item.get("max_articles", 0)),
                layout=str(item.get("layout", "single")),
            )
            for item in data["sections"]
        )
        return Template(
            id=template_id,
            name=str(data.get("name", template_id)),
            description=str(data.get("description", "")),
            page_size=PageSize(float(page["width"]), float(page["height"])),
            margins=Margins(float(margins["top"]), float(margins["bottom"]),
                            float(margins["left"]), float(margins["right"])),
            sections=sections,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidTemplate(f"Template '{template_id}' is malformed: {str(e)}")


class TemplateRegistry:
    """Registry of layout templates keyed by id."""

    def __init__(self, templates: Optional[List[Template]] = None):
        self._templates: Dict[str, Template] = {}
        for template in templates or []:
            self.register(template)

    def register(self, template: Template) -> None:
        """
        Validate and add a template.

        Raises:
            InvalidTemplate: The template is malformed or its id is taken.
        """
        validate_template(template)
        if template.id in self._templates:
            raise InvalidTemplate(f"Template '{template.id}' is already registered")
        self._templates[template.id] = template
        logger.debug(f"Registered layout template '{template.id}' with {len(template.sections)} sections")

    def get_template(self, template_id: str) -> Template:
        template = self._templates.get(template_id)
        if template is None:
            raise TemplateNotFound(template_id)
        return template

    def list_templates(self) -> List[Dict[str, str]]:
        return [
            {"id": template_id, "name": template.name, "description": template.description}
            for template_id, template in self._templates.items()
        ]

    def __contains__(self, template_id: str) -> bool:
        return template_id in self._templates

    def __iter__(self):
        return iter(self._templates.values())


A4 = PageSize(595, 842)
A5 = PageSize(420, 595)

TRADITIONAL = Template(
    id="traditional",
    name="Traditional Bengali",
    description="Classic Bengali newspaper layout with masthead and columns",
    page_size=A4,
    margins=Margins(top=50, bottom=50, left=40, right=40),
    sections=(
        Section("header", Rect(40, 50, 515, 80), 0),
        Section("breaking", Rect(40, 140, 515, 60), 1),
        Section("main", Rect(40, 210, 340, 400), 3),
        Section("sidebar", Rect(390, 210, 165, 400), 4),
        Section("secondary", Rect(40, 620, 515, 120), 3, "triple"),
        Section("footer", Rect(40, 750, 515, 40), 0),
    ),
)

MODERN = Template(
    id="modern",
    name="Modern Digital",
    description="Clean, modern layout optimized for digital reading",
    page_size=A4,
    margins=Margins(top=30, bottom=30, left=30, right=30),
    sections=(
        Section("header", Rect(30, 30, 535, 60), 0),
        Section("breaking", Rect(30, 100, 535, 80), 1),
        Section("main", Rect(30, 190, 535, 300), 2, "double"),
        Section("secondary", Rect(30, 500, 535, 200), 4, "grid"),
        Section("footer", Rect(30, 710, 535, 40), 0),
    ),
)

COMPACT = Template(
    id="compact",
    name="Compact Mobile-First",
    description="Space-efficient layout for mobile viewing",
    page_size=A5,
    margins=Margins(top=20, bottom=20, left=20, right=20),
    sections=(
        Section("header", Rect(20, 20, 380, 50), 0),
        Section("breaking", Rect(20, 80, 380, 60), 1),
        Section("main", Rect(20, 150, 380, 300), 3),
        Section("secondary", Rect(20, 460, 380, 100), 3),
    ),
)

BUILTIN_TEMPLATES = (TRADITIONAL, MODERN, COMPACT)


def build_default_registry(extra_templates: Optional[List[Dict[str, Any]]] = None) -> TemplateRegistry:
    """
    Create the registry with the built-in layouts plus any declared in configuration.

    Args:
        extra_templates: Template definitions, each with an 'id' key.
    """
    registry = TemplateRegistry(list(BUILTIN_TEMPLATES))
    for data in extra_templates or []:
        registry.register(template_from_dict(str(data.get("id", "")), data))
        logger.info(f"Registered configured layout template '{data.get('id')}'")
    return registry
