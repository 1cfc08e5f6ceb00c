"""Routes document highlight requests to a service per language id."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from refmark.services.document_highlights import DocumentHighlightsService


class DocumentHighlightsServiceHub:
    def __init__(self) -> None:
        self._providers_by_language: dict[str, DocumentHighlightsService] = {}
        self._default_provider: DocumentHighlightsService | None = None

    def register_provider(
        self,
        provider: DocumentHighlightsService,
        *,
        language_ids: Iterable[str] | str | None = None,
        default: bool = False,
    ) -> None:
        if provider is None:
            return

        if default:
            self._default_provider = provider

        if language_ids is not None:
            if isinstance(language_ids, str):
                language_iter = [language_ids]
            else:
                language_iter = language_ids
            for raw in language_iter:
                lang = str(raw or "").strip().lower()
                if not lang:
                    continue
                self._providers_by_language[lang] = provider

    def unregister_language(self, language_id: str) -> None:
        self._providers_by_language.pop(str(language_id or "").strip().lower(), None)

    def provider_for_language(self, language_id: str) -> DocumentHighlightsService | None:
        key = str(language_id or "").strip().lower()
        if key and key in self._providers_by_language:
            return self._providers_by_language[key]
        return self._default_provider

    def has_provider_for(self, language_id: str) -> bool:
        return self.provider_for_language(language_id) is not None

    def shutdown(self) -> None:
        for provider in self._iter_unique_providers():
            fn = getattr(provider, "shutdown", None)
            if callable(fn):
                fn()

    def _iter_unique_providers(self) -> Iterator[DocumentHighlightsService]:
        seen: set[int] = set()
        if self._default_provider is not None:
            seen.add(id(self._default_provider))
            yield self._default_provider
        for provider in self._providers_by_language.values():
            pid = id(provider)
            if pid in seen:
                continue
            seen.add(pid)
            yield provider
