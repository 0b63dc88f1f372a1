"""Definition lists: parsing typed input and importing from files."""
import json
import re
from pathlib import Path
from typing import Iterable

_SEPARATORS = re.compile(r"[,\n]")


def split_definitions(text: str) -> list[str]:
    """Comma/newline separated text -> trimmed, non-empty entries."""
    return [part.strip() for part in _SEPARATORS.split(text or "") if part.strip()]


def filter_new_definitions(text: str, existing: Iterable[str]) -> list[str]:
    """
    Definitions from ``text`` worth generating cards for.

    Duplicates inside the input are dropped case-insensitively, keeping the
    first casing seen; entries matching an existing definition (ignoring case)
    are dropped too.
    """
    known = {e.strip().lower() for e in existing}
    result = []
    for definition in split_definitions(text):
        key = definition.lower()
        if key in known:
            continue
        known.add(key)
        result.append(definition)
    return result


def _definitions_from_data(data) -> list[str]:
    if isinstance(data, dict):
        for key in ("definitions", "cards", "items"):
            if isinstance(data.get(key), list):
                return _definitions_from_data(data[key])
        return [str(v) for v in data.values() if isinstance(v, str)]
    if isinstance(data, list):
        out = []
        for item in data:
            if isinstance(item, dict):
                if item.get("definition"):
                    out.append(str(item["definition"]))
            elif item is not None:
                out.append(str(item))
        return out
    return split_definitions(str(data))


def read_file_content(file_path: str) -> str:
    path = Path(file_path)
    suffix = path.suffix.lower()

    if suffix in (".txt", ".md", ".csv"):
        return path.read_text()
    elif suffix == ".json":
        return "\n".join(_definitions_from_data(json.loads(path.read_text())))
    elif suffix in (".yaml", ".yml"):
        import yaml
        return "\n".join(_definitions_from_data(yaml.safe_load(path.read_text())))
    elif suffix == ".pdf":
        from PyPDF2 import PdfReader
        reader = PdfReader(file_path)
        return "\n".join(page.extract_text() or "" for page in reader.pages)
    elif suffix == ".docx":
        from docx import Document
        doc = Document(file_path)
        return "\n".join(p.text for p in doc.paragraphs)
    elif suffix in (".html", ".htm"):
        from bs4 import BeautifulSoup
        html = path.read_text()
        return BeautifulSoup(html, "html.parser").get_text("\n")
    else:
        # Try reading as plain text
        return path.read_text()


def load_definitions(file_path: str) -> list[str]:
    """Definitions listed in a file, one per line or comma separated."""
    return split_definitions(read_file_content(file_path))
