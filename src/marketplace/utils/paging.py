"""Exhaustive reads for periodic jobs and reports.

``_dao.query...all()`` returns one page (100 rows by default). Jobs that must
see every matching row walk the pages with ``fetch_all``.
"""

from protean.utils.globals import current_domain

PAGE_SIZE = 500


def fetch_all(aggregate_cls, page_size=PAGE_SIZE, **filters):
    query = current_domain.repository_for(aggregate_cls)._dao.query
    if filters:
        query = query.filter(**filters)

    rows = []
    offset = 0
    while True:
        results = query.offset(offset).limit(page_size).all()
        rows.extend(results.items)
        if not results.has_next:
            return rows
        offset += page_size
