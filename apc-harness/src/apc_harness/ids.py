"""Collect application ids from the command line / a file and check them.

An id is valid if its store page exists, i.e. for `com.booking`::

    GET https://play.google.com/store/apps/details?id=com.booking

answers with status 200.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

import httpx

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0"


def read_id_file(path: Optional[str | Path]) -> list[str]:
    """Ids from a file, one per line; an unreadable file yields no ids."""

    if path is None:
        return []
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        logger.warning("Could not read id file %s: %s", path, e)
        return []
    return [line.strip() for line in text.splitlines() if line.strip()]


def merge_ids(*sources: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for source in sources:
        for raw in source:
            s = str(raw).strip()
            if s and s not in seen:
                seen.add(s)
                out.append(s)
    return out


class CatalogValidator:
    def __init__(
        self,
        *,
        url_template: str,
        timeout_s: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._url_template = url_template
        self._timeout_s = timeout_s
        self._client = client

    def is_valid(self, app_id: str) -> bool:
        url = self._url_template.format(id=app_id)
        headers = {"User-Agent": USER_AGENT}
        try:
            if self._client is not None:
                resp = self._client.get(url, headers=headers, follow_redirects=True)
            else:
                resp = httpx.get(
                    url, headers=headers, timeout=self._timeout_s, follow_redirects=True
                )
        except httpx.HTTPError as e:
            logger.warning("Could not check %s: %s", app_id, e)
            return False
        if resp.status_code != 200:
            logger.debug("%s rejected by catalog (status %s)", app_id, resp.status_code)
            return False
        return True


def collect_ids(
    ids: Optional[Sequence[str]],
    id_file: Optional[str | Path],
    *,
    validate: Optional[Callable[[str], bool]] = None,
) -> list[str]:
    merged = merge_ids(read_id_file(id_file), ids or [])
    if validate is None:
        return merged
    return [app_id for app_id in merged if validate(app_id)]


def write_id_file(path: str | Path, ids: Sequence[str]) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text("\n".join(ids), encoding="utf-8")
    return p
