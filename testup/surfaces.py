"""
UI surfaces that receive test results.

A surface only needs two primitives: set a named property of a named element,
and replace the whole document. Live front-ends get one property update per
finished test file; static front-ends get a single document.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Iterable, Optional

from bs4 import BeautifulSoup

from .models import TestCategory
from .serialization import to_minimal_json

logger = logging.getLogger(__name__)

HEADS_UP_ID = "headsUpDisplay"
NOT_RUN_HTML = '<span style="color:#666">Not run</span>'


class ReportSurface(ABC):
    """Base class for result destinations."""

    @abstractmethod
    def set_element_property(self, element_id: str, property_name: str, value: str):
        ...

    @abstractmethod
    def replace_document(self, html: str):
        ...


class RecordingSurface(ReportSurface):
    """Keeps every update in memory, in the order received."""

    def __init__(self):
        self.updates = []
        self.document = None

    def set_element_property(self, element_id: str, property_name: str, value: str):
        self.updates.append((element_id, property_name, value))

    def replace_document(self, html: str):
        self.document = html

    def to_dict(self) -> dict:
        return {
            "updates": [{"element": e, "property": p, "value": v} for e, p, v in self.updates],
            "document": self.document,
        }


class ScriptSurface(ReportSurface):
    """Forwards updates as script calls to a host callback, e.g. a web dialog."""

    def __init__(self, execute_script: Callable[[str], None]):
        self.execute_script = execute_script

    def set_element_property(self, element_id: str, property_name: str, value: str):
        args = ", ".join(to_minimal_json(a) for a in (element_id, property_name, value))
        self.execute_script(f"setGuiElementProperty({args});")

    def replace_document(self, html: str):
        self.execute_script(f"replaceDocument({to_minimal_json(html)});")

    def create_gui(self, payload: str):
        self.execute_script(f"createGui({payload});")


class DocumentSurface(ReportSurface):
    """An HTML document edited in memory and saved to disk on request."""

    def __init__(self, html: Optional[str] = None):
        self.soup = BeautifulSoup(html or build_page([]), 'html.parser')

    @classmethod
    def for_categories(cls, categories: Iterable[TestCategory]) -> "DocumentSurface":
        return cls(build_page(categories))

    def set_element_property(self, element_id: str, property_name: str, value: str):
        element = self.soup.find(id=element_id)
        if element is None:
            logger.warning(f"No element with id {element_id!r}, ignoring {property_name} update")
            return
        if property_name == "className":
            element['class'] = value
        elif property_name == "innerHTML":
            element.clear()
            element.append(BeautifulSoup(value, 'html.parser'))
        else:
            element[property_name] = value

    def replace_document(self, html: str):
        self.soup = BeautifulSoup(html, 'html.parser')

    def render(self) -> str:
        return str(self.soup)

    def save(self, path: Path) -> Path:
        path = Path(path)
        path.write_text(self.render(), encoding='utf-8')
        return path


_PAGE_STYLE = """body { font-family: sans-serif; font-size: 10pt; }
.pass { background-color: #cfc; }
.fail { background-color: #fcc; }
.warn { background-color: #ffc; }
.unknown { background-color: #ddd; }
.failMsg { color: #c00; }
.result { margin-left: 2em; font-family: monospace; }"""


def build_page(categories: Iterable[TestCategory]) -> str:
    """Skeleton page with one view per category and one entry per test file."""
    soup = BeautifulSoup(
        f'<html><head><meta charset="utf-8"><title>TestUp</title>'
        f'<style>{_PAGE_STYLE}</style></head><body></body></html>',
        'html.parser',
    )
    body = soup.body
    body.append(soup.new_tag('div', id=HEADS_UP_ID))

    for category in categories:
        view = soup.new_tag('div', id=f"v_{category.name}", **{'class': 'view'})
        heading = soup.new_tag('h2')
        heading.string = category.title
        view.append(heading)
        if category.intro:
            intro = soup.new_tag('div', **{'class': 'intro'})
            intro.append(BeautifulSoup(category.intro, 'html.parser'))
            view.append(intro)
        for test_file in category.files:
            anchor = soup.new_tag('a', id=test_file.element_id, href='#')
            anchor.string = test_file.element_id
            view.append(anchor)
            view.append(soup.new_tag('br'))
            result = soup.new_tag('div', id=f"{test_file.element_id}_results", **{'class': 'result'})
            result.append(BeautifulSoup(NOT_RUN_HTML, 'html.parser'))
            view.append(result)
        body.append(view)

    return str(soup)
