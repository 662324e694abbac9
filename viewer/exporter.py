"""
Snapshot exporter.

Serializes the rendered markup together with the text of every stylesheet
rule into one self-contained HTML fragment. Stylesheets that cannot be read
(cross-origin sheets in a browser) are skipped and reported as warnings
instead of aborting the export.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Union

from api.shared.logger import get_logger

logger = get_logger(__name__)


class StylesheetReadError(RuntimeError):
    """Raised when a stylesheet's rules are not accessible."""


@dataclass(frozen=True)
class CSSRule:
    """A style rule. ``css_text`` wins when present."""

    selector: str = ""
    declarations: str = ""
    css_text: Optional[str] = None

    def text(self) -> str:
        if self.css_text is not None:
            return self.css_text
        return f"{self.selector} {{\n{self.declarations}\n}}\n"


@dataclass
class Stylesheet:
    """A stylesheet attached to the viewer page."""

    rules: List[Union[CSSRule, str]] = field(default_factory=list)
    href: Optional[str] = None
    cross_origin: bool = False

    def css_rules(self) -> List[Union[CSSRule, str]]:
        if self.cross_origin:
            raise StylesheetReadError(f"Cannot read rules of cross-origin stylesheet {self.href}")
        return list(self.rules)


@dataclass(frozen=True)
class Snapshot:
    content: str
    warnings: Sequence[str] = ()

    @property
    def partial(self) -> bool:
        return bool(self.warnings)


def collect_css(stylesheets: Iterable[Stylesheet]):
    """Join every readable rule; returns ``(css_text, warnings)``."""
    texts: List[str] = []
    warnings: List[str] = []
    for index, sheet in enumerate(stylesheets):
        try:
            rules = sheet.css_rules()
        except StylesheetReadError as e:
            name = sheet.href or f"stylesheet #{index}"
            warnings.append(f"Skipped {name}: {e}")
            logger.warning("Partial export: skipped unreadable stylesheet %s (%s)", name, e)
            continue
        for rule in rules:
            texts.append(rule.text() if isinstance(rule, CSSRule) else str(rule))
    return "\n".join(texts), warnings


def export_snapshot(markup: str, stylesheets: Iterable[Stylesheet]) -> Snapshot:
    """Build the exported fragment: rendered markup followed by an inline style block."""
    css, warnings = collect_css(stylesheets)
    return Snapshot(content=f"{markup}<style>{css}</style>", warnings=tuple(warnings))
