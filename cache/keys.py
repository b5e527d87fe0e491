"""
cache/keys.py -- Deterministic cache keys for listing queries.

A key encodes every field that shapes a listing result, in a fixed order:

    accounts:list:page=2:limit=10:sort=created_at:order=DESC:search=<none>
    accounts:list:page=1:limit=10:sort=name:order=ASC:search="ada"

Two queries that would return the same rows always share a key; two that
could differ never do. The search term is JSON-quoted, so a literal search
for "<none>" or for "" can never collide with the unquoted sentinel used when
no search term was supplied at all. It is also the last field, so whatever
characters it contains cannot bleed into another field.
"""

from __future__ import annotations

import json

from core.query import PageOptions

NO_SEARCH = "<none>"


def listing_key(namespace: str, options: PageOptions) -> str:
    search = NO_SEARCH if options.search is None else json.dumps(options.search, ensure_ascii=False)
    return (
        f"{namespace}:list"
        f":page={options.page}"
        f":limit={options.limit}"
        f":sort={options.sort}"
        f":order={options.order}"
        f":search={search}"
    )
