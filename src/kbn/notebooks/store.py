"""JSON-file persistence for notebooks, knowledge items and chat transcripts."""

import json
import logging
import re
import shutil
import threading
from pathlib import Path
from typing import Any

from ..errors import NotFoundError, ValidationError
from ..models import ChatMessage, KnowledgeItem, KnowledgeType, Notebook, Role

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")
_UPDATABLE = {"title", "content", "metadata", "embedded"}


class NotebookStore:
    """One JSON document per notebook under ``{data_path}/notebooks``.

    Uploaded PDFs are copied to ``{data_path}/notebooks/{id}/files`` so the
    notebook owns its sources.
    """

    def __init__(self, data_path: str | Path):
        self.data_path = Path(data_path)
        self.notebooks_dir = self.data_path / "notebooks"
        self.notebooks_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    def notebook_path(self, notebook_id: str) -> Path:
        if not notebook_id or not _SAFE_ID.match(notebook_id):
            raise ValidationError(f"Invalid notebook id: {notebook_id!r}")
        return self.notebooks_dir / f"{notebook_id}.json"

    def files_dir(self, notebook_id: str) -> Path:
        return self.notebook_path(notebook_id).with_suffix("") / "files"

    def _read(self, notebook_id: str) -> Notebook | None:
        path = self.notebook_path(notebook_id)
        if not path.exists():
            return None
        return Notebook.from_dict(json.loads(path.read_text(encoding="utf-8")))

    def _write(self, notebook: Notebook) -> None:
        path = self.notebook_path(notebook.id)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(notebook.to_dict(), indent=2), encoding="utf-8")
        tmp.replace(path)

    # Notebooks

    def list_notebooks(self) -> list[Notebook]:
        """All notebooks, most recently updated first."""
        notebooks = []
        for path in self.notebooks_dir.glob("*.json"):
            notebook = self._read(path.stem)
            if notebook:
                notebooks.append(notebook)
        notebooks.sort(key=lambda n: n.updated_at, reverse=True)
        return notebooks

    def get_notebook(self, notebook_id: str) -> Notebook:
        notebook = self._read(notebook_id)
        if notebook is None:
            raise NotFoundError(f"Notebook {notebook_id} not found")
        return notebook

    def create_notebook(self, name: str) -> Notebook:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Notebook name is required")
        notebook = Notebook(name=name.strip())
        with self._lock:
            self._write(notebook)
            self.files_dir(notebook.id).mkdir(parents=True, exist_ok=True)
        return notebook

    def rename_notebook(self, notebook_id: str, name: str) -> Notebook:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Notebook name is required")
        with self._lock:
            notebook = self.get_notebook(notebook_id)
            notebook.name = name.strip()
            notebook.touch()
            self._write(notebook)
        return notebook

    def delete_notebook(self, notebook_id: str) -> None:
        with self._lock:
            self.notebook_path(notebook_id).unlink(missing_ok=True)
            shutil.rmtree(self.files_dir(notebook_id).parent, ignore_errors=True)

    # Knowledge items

    def list_items(self, notebook_id: str) -> list[KnowledgeItem]:
        return self.get_notebook(notebook_id).knowledge_items

    def get_item(self, notebook_id: str, knowledge_id: str) -> KnowledgeItem:
        for item in self.list_items(notebook_id):
            if item.id == knowledge_id:
                return item
        raise NotFoundError(f"Knowledge item {knowledge_id} not found")

    def add_item(
        self,
        notebook_id: str,
        type: str | KnowledgeType,
        title: str = "",
        content: str = "",
        metadata: dict[str, Any] | None = None,
        file_path: str | Path | None = None,
    ) -> KnowledgeItem:
        """Add a knowledge item. PDFs are given by file_path and copied in."""
        if not notebook_id:
            raise ValidationError("Notebook ID is required")
        try:
            item_type = KnowledgeType(type)
        except ValueError:
            raise ValidationError(f"Unsupported knowledge item type: {type}") from None

        with self._lock:
            notebook = self.get_notebook(notebook_id)
            item = KnowledgeItem(
                notebook_id=notebook_id,
                type=item_type,
                title=title or "",
                content=content or "",
                metadata=metadata or {},
            )

            if item_type == KnowledgeType.PDF:
                if not file_path:
                    raise ValidationError("A file path is required for PDF items")
                src = Path(file_path)
                if not src.is_file():
                    raise NotFoundError(f"File not found: {src}")
                dest_dir = self.files_dir(notebook_id)
                dest_dir.mkdir(parents=True, exist_ok=True)
                # id prefix keeps same-named uploads apart
                dest = dest_dir / f"{item.id}_{src.name}"
                shutil.copy2(src, dest)
                item.content = str(dest)
                item.title = item.title or src.stem

            notebook.knowledge_items.append(item)
            notebook.touch()
            self._write(notebook)
        return item

    def update_item(self, notebook_id: str, knowledge_id: str, **updates: Any) -> KnowledgeItem:
        unknown = set(updates) - _UPDATABLE
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        with self._lock:
            notebook = self.get_notebook(notebook_id)
            for item in notebook.knowledge_items:
                if item.id == knowledge_id:
                    for key, value in updates.items():
                        setattr(item, key, value)
                    notebook.touch()
                    self._write(notebook)
                    return item
        raise NotFoundError(f"Knowledge item {knowledge_id} not found")

    def delete_item(self, notebook_id: str, knowledge_id: str) -> KnowledgeItem:
        """Remove the item record and, for PDFs, its stored file."""
        with self._lock:
            notebook = self.get_notebook(notebook_id)
            item = next((k for k in notebook.knowledge_items if k.id == knowledge_id), None)
            if item is None:
                raise NotFoundError(f"Knowledge item {knowledge_id} not found")

            if item.type == KnowledgeType.PDF and item.content:
                try:
                    Path(item.content).unlink(missing_ok=True)
                except OSError as e:
                    logger.warning("Could not delete %s: %s", item.content, e)

            notebook.knowledge_items = [k for k in notebook.knowledge_items if k.id != knowledge_id]
            notebook.touch()
            self._write(notebook)
        return item

    # Chat transcript

    def get_chat_history(self, notebook_id: str) -> list[ChatMessage]:
        if not notebook_id:
            raise ValidationError("Notebook ID is required")
        return self.get_notebook(notebook_id).chat_messages

    def add_message(self, notebook_id: str, role: str | Role, content: str) -> ChatMessage:
        if not notebook_id:
            raise ValidationError("Notebook ID is required")
        try:
            role = Role(role)
        except ValueError:
            raise ValidationError('Role must be "user" or "assistant"') from None
        if not isinstance(content, str) or not content:
            raise ValidationError("Content is required")

        message = ChatMessage(role=role, content=content)
        with self._lock:
            notebook = self.get_notebook(notebook_id)
            notebook.chat_messages.append(message)
            notebook.touch()
            self._write(notebook)
        return message

    def clear_chat(self, notebook_id: str) -> None:
        with self._lock:
            notebook = self.get_notebook(notebook_id)
            notebook.chat_messages = []
            notebook.touch()
            self._write(notebook)

    @staticmethod
    def recent_messages(messages: list[ChatMessage], limit: int = 20) -> list[ChatMessage]:
        if limit <= 0:
            return []
        return list(messages)[-limit:]
