"""Numbered pagination links for the calendar."""
from typing import Dict, List, Optional
from urllib.parse import urlencode

from calendar_view.display_vars import escape

END_SIZE = 1
MID_SIZE = 2
PREV_TEXT = '« Previous'
NEXT_TEXT = 'Next »'


def render_pagination(current_page: int, max_pages: int,
                      query_params: Optional[Dict[str, List[str]]] = None) -> str:
    """
    Render page links.

    Every query parameter except `paged` is preserved. Pages away from the
    ends and the current page collapse into an ellipsis.

    Args:
        current_page: Current page number
        max_pages: Total page count
        query_params: Request query parameters (multi-valued, raw keys)

    Returns:
        HTML fragment, empty when there is a single page
    """
    if max_pages <= 1:
        return ''

    params = {key: value for key, value in (query_params or {}).items() if key != 'paged'}
    links = []

    if current_page > 1:
        links.append(_page_link(current_page - 1, params, PREV_TEXT, 'prev page-numbers'))

    dots = False
    for number in range(1, max_pages + 1):
        if number == current_page:
            links.append(f'<span aria-current="page" class="page-numbers current">{number}</span>')
            dots = True
        elif (number <= END_SIZE
              or current_page - MID_SIZE <= number <= current_page + MID_SIZE
              or number > max_pages - END_SIZE):
            links.append(_page_link(number, params, str(number), 'page-numbers'))
            dots = True
        elif dots:
            links.append('<span class="page-numbers dots">&hellip;</span>')
            dots = False

    if current_page < max_pages:
        links.append(_page_link(current_page + 1, params, NEXT_TEXT, 'next page-numbers'))

    items = '</li>\n\t<li>'.join(links)
    return (
        '<nav class="data-machine-events-pagination" aria-label="Events pagination">'
        f"<ul class='page-numbers'>\n\t<li>{items}</li>\n</ul>\n"
        '</nav>'
    )


def build_query_string(params: Dict[str, List[str]]) -> str:
    return urlencode(
        [(key, value) for key, values in params.items() for value in _as_list(values)]
    )


def _page_link(page: int, params: Dict[str, List[str]], text: str, css_class: str) -> str:
    query = build_query_string({'paged': [str(page)], **params})
    return f'<a class="{css_class}" href="?{escape(query)}">{escape(text)}</a>'


def _as_list(value) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]
