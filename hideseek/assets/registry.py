from __future__ import annotations

import csv
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from hideseek.api.models import ALL_SIZES, GameSize, Question, QuestionCategoryId

ASSETS_DIR = Path(__file__).resolve().parent
QUESTIONS_CSV = ASSETS_DIR / "questions.csv"


class AssetLoadError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class QuestionCatalog:
    """Static question catalog in file order, with lookup by id."""

    questions: tuple[Question, ...]
    _by_id: dict[str, Question]

    @staticmethod
    def from_questions(questions: list[Question]) -> "QuestionCatalog":
        by_id: dict[str, Question] = {}
        for q in questions:
            if q.id in by_id:
                raise AssetLoadError(f"Duplicate question id: {q.id}")
            by_id[q.id] = q
        return QuestionCatalog(questions=tuple(questions), _by_id=by_id)

    def get(self, question_id: str) -> Question | None:
        return self._by_id.get(question_id)

    def __contains__(self, item: object) -> bool:
        return isinstance(item, str) and item in self._by_id

    def __len__(self) -> int:
        return len(self.questions)

    def in_category(self, category_id: QuestionCategoryId) -> list[Question]:
        return [q for q in self.questions if q.category_id == category_id]


def _read_csv_rows(path: Path) -> list[list[str]]:
    try:
        raw = path.read_text(encoding="utf-8-sig")
    except FileNotFoundError as e:
        raise AssetLoadError(f"Asset file not found: {path}") from e

    reader = csv.reader(raw.splitlines())
    rows = [[c.strip() for c in row] for row in reader]
    return [row for row in rows if any(cell for cell in row)]


def _parse_sizes(cell: str, *, path: Path) -> tuple[GameSize, ...]:
    if not cell:
        return ALL_SIZES
    try:
        return tuple(GameSize(s.strip().casefold()) for s in cell.split("|") if s.strip())
    except ValueError as e:
        raise AssetLoadError(f"Unknown game size {cell!r} in {path}") from e


def load_question_catalog(path: Path = QUESTIONS_CSV) -> QuestionCatalog:
    rows = _read_csv_rows(path)
    if not rows:
        raise AssetLoadError(f"Empty question CSV: {path}")

    header = [c.casefold() for c in rows[0]]
    if header[:5] != ["id", "category", "subcategory", "text", "available_in"]:
        raise AssetLoadError(f"Unexpected header in {path}: {rows[0]}")

    out: list[Question] = []
    for row in rows[1:]:
        if len(row) < 4:
            continue
        qid, category, subcategory, text = row[0], row[1], row[2], row[3]
        if not qid or not text:
            continue
        try:
            category_id = QuestionCategoryId(category.casefold())
        except ValueError as e:
            raise AssetLoadError(f"Unknown category {category!r} for question {qid}") from e
        out.append(
            Question(
                id=qid,
                category_id=category_id,
                text=text,
                subcategory=subcategory or None,
                available_in=_parse_sizes(row[4] if len(row) > 4 else "", path=path),
            )
        )

    return QuestionCatalog.from_questions(out)


@lru_cache(maxsize=1)
def default_catalog() -> QuestionCatalog:
    return load_question_catalog()
