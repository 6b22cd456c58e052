"""Bookshelf tools offered to the primary model tier."""

import logging
from abc import ABC, abstractmethod
from collections import Counter
from typing import Any, Dict, List, Optional
from pydantic import BaseModel

from retrieval.book_catalog import BookCatalog
from schemas.portfolio import Portfolio
from security.sanitizer import Sanitizer
from utils.text import truncate

logger = logging.getLogger(__name__)

NOTES_OPEN = "<private_notes>"
NOTES_CLOSE = "</private_notes>"


def wrap_private(text: str) -> str:
    """Delimit externally authored text so the model reads it as data."""
    return f"{NOTES_OPEN}{text}{NOTES_CLOSE}"


class ToolResult(BaseModel):
    """Result from tool execution."""
    tool_name: str
    success: bool
    result: Any
    error: Optional[str] = None


class Tool(ABC):
    """Abstract base class for tools."""
    name: str
    description: str
    parameters: Dict[str, Any]

    @abstractmethod
    def execute(self, **kwargs) -> ToolResult:
        """Execute the tool with given arguments."""
        pass

    def get_definition(self) -> Dict:
        """Get OpenAI-compatible tool definition."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters
            }
        }

    def _ok(self, result: Any) -> ToolResult:
        return ToolResult(tool_name=self.name, success=True, result=result)

    def _error(self, message: str) -> ToolResult:
        return ToolResult(tool_name=self.name, success=False, result=None, error=message)


class SearchBooksTool(Tool):
    """Tool for finding books on the shelf."""

    name = "search_books"
    description = """Search the bookshelf by title, author, or topic.
Returns matching books with their id and the exact [item::title::id] reference to use."""

    parameters = {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "Title, author, or topic keywords"
            }
        },
        "required": ["query"]
    }

    MAX_RESULTS = 5

    def __init__(self, catalog: BookCatalog):
        self.catalog = catalog

    def execute(self, query: str = "") -> ToolResult:
        """Search for books."""
        books = self.catalog.search(query)[:self.MAX_RESULTS]
        return self._ok([
            {
                "id": book.id,
                "title": book.title,
                "author": book.author,
                "language": book.language,
                "reference": book.reference(),
            }
            for book in books
        ])


class GetBookDetailsTool(Tool):
    """Tool for reading one book's entry, including the owner's notes."""

    name = "get_book_details"
    description = """Get full details of one book, including the owner's reading notes.
Use this before saying anything about a book's content."""

    parameters = {
        "type": "object",
        "properties": {
            "book_id": {
                "type": "string",
                "description": "Book id as returned by search_books"
            }
        },
        "required": ["book_id"]
    }

    def __init__(self, catalog: BookCatalog, sanitizer: Sanitizer):
        self.catalog = catalog
        self.sanitizer = sanitizer

    def execute(self, book_id: str = "") -> ToolResult:
        """Get book details."""
        book = self.catalog.get_by_id(book_id)
        if book is None:
            return self._error(f"No book with id '{book_id}'")

        return self._ok({
            "id": book.id,
            "title": book.title,
            "author": book.author,
            "finished_at": book.finished_at,
            "language": book.language,
            "reference": book.reference(),
            "notes": wrap_private(self.sanitizer.sanitize(book.private_notes)),
        })


class GetReadingStatsTool(Tool):
    """Tool summarizing the owner's reading history."""

    name = "get_reading_stats"
    description = """Get statistics about the bookshelf: number of books,
books per language and per year, and the most recently finished books."""

    parameters = {
        "type": "object",
        "properties": {},
    }

    RECENT_COUNT = 3

    def __init__(self, catalog: BookCatalog):
        self.catalog = catalog

    def execute(self) -> ToolResult:
        """Compute reading stats."""
        books = self.catalog.get_all()
        finished = sorted(
            (b for b in books if b.finished_at),
            key=lambda b: b.finished_at,
            reverse=True
        )
        by_year = Counter(b.finished_at[:4] for b in finished)

        return self._ok({
            "total_books": len(books),
            "by_language": dict(Counter(b.language for b in books)),
            "by_year": dict(sorted(by_year.items())),
            "recently_finished": [
                {"reference": b.reference(), "finished_at": b.finished_at}
                for b in finished[:self.RECENT_COUNT]
            ],
        })


class GetOwnerInfoTool(Tool):
    """Tool describing the shelf owner."""

    name = "get_owner_info"
    description = """Get the bookshelf owner's profile: who they are, their work,
projects, and skills. Use for questions about the owner."""

    parameters = {
        "type": "object",
        "properties": {},
    }

    DESCRIPTION_CHARS = 300

    def __init__(self, portfolio: Optional[Portfolio], sanitizer: Sanitizer):
        self.portfolio = portfolio
        self.sanitizer = sanitizer

    def execute(self) -> ToolResult:
        """Get owner profile."""
        if self.portfolio is None:
            return self._error("Owner profile is not available")

        clean = self.sanitizer.sanitize
        about = self.portfolio.about
        projects: List[Dict[str, Any]] = [
            {
                "name": clean(p.name),
                "description": clean(truncate(p.description, self.DESCRIPTION_CHARS)),
                "tech": p.tech,
            }
            for p in self.portfolio.projects
        ]
        skills = self.portfolio.skills

        return self._ok(wrap_private(_render_owner(
            name=clean(about.name),
            title=clean(about.title),
            tagline=clean(about.tagline),
            current_work=clean(about.current_work),
            philosophy=clean(about.philosophy),
            projects=projects,
            skills=skills.backend + skills.frontend + skills.infrastructure + skills.concepts,
            social=[clean(s.name) for s in self.portfolio.social],
        )))


def _render_owner(name, title, tagline, current_work, philosophy, projects, skills, social) -> str:
    lines = [f"Name: {name}"]
    if title:
        lines.append(f"Title: {title}")
    if tagline:
        lines.append(f"Tagline: {tagline}")
    if current_work:
        lines.append(f"Current work: {current_work}")
    if philosophy:
        lines.append(f"Philosophy: {philosophy}")
    for project in projects:
        tech = f" ({', '.join(project['tech'])})" if project["tech"] else ""
        lines.append(f"Project: {project['name']}{tech}: {project['description']}")
    if skills:
        lines.append(f"Skills: {', '.join(skills)}")
    if social:
        lines.append(f"Social: {', '.join(social)}")
    return "\n".join(lines)


def build_bookshelf_tools(
    catalog: BookCatalog,
    portfolio: Optional[Portfolio],
    sanitizer: Sanitizer
) -> List[Tool]:
    """All tools offered to the primary tier."""
    return [
        SearchBooksTool(catalog),
        GetBookDetailsTool(catalog, sanitizer),
        GetReadingStatsTool(catalog),
        GetOwnerInfoTool(portfolio, sanitizer),
    ]
