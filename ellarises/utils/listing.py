"""List-page glue between the request, the search builder and the page size setting."""

from flask import current_app

from ellarises.services.search import PagedResult, SearchFields, paginate
from ellarises.utils.request_parsing import parse_search_query


def list_page(query, fields: SearchFields, search_arg: str = 'search', page_arg: str = 'page') -> PagedResult:
    search = parse_search_query(search_arg, page_arg)
    return paginate(query, search, fields, current_app.config['PAGE_SIZE'])
