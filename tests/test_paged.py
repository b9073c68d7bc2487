"""Tests for lazy pagination."""

import pytest

from github_client.api.errors import DecodeError
from github_client.api.paged import next_page_url

from .conftest import API, make_response

PAGE_2 = f"{API}/items?per_page=3&page=2"


def page_one():
    return make_response(200, [{'id': 1}, {'id': 2}, {'id': 3}], headers={
        'Link': f'<{PAGE_2}>; rel="next", <{PAGE_2}>; rel="last"',
    })


def page_two():
    return make_response(200, [{'id': 4}, {'id': 5}], headers={
        'Link': f'<{API}/items?per_page=3&page=1>; rel="first", <{API}/items?per_page=3&page=1>; rel="prev"',
    })


@pytest.fixture
def items(executor):
    return executor.execute_paged(executor.new_request().with_url_path("/items").build(), page_size=3)


class TestNextPageUrl:
    """Test cases for Link header parsing."""

    def test_next(self):
        assert next_page_url(page_one().headers) == PAGE_2

    def test_last_page(self):
        assert next_page_url(page_two().headers) is None
        assert next_page_url({}) is None


class TestPagedIterable:
    """Test cases for PagedIterable."""

    def test_yields_all_pages_in_order(self, items, connector):
        connector.queue(page_one(), page_two())

        assert [item['id'] for item in items] == [1, 2, 3, 4, 5]
        assert len(connector.calls) == 2
        assert connector.calls[0].url == f"{API}/items?per_page=3"
        assert connector.calls[1].url == PAGE_2

    def test_page_param_followed_by_next_link(self, executor, connector):
        connector.queue(
            make_response(200, [{'id': 1}, {'id': 2}, {'id': 3}],
                          headers={'Link': f'<{API}/items?page=2>; rel="next"'}),
            make_response(200, [{'id': 4}, {'id': 5}]),
        )
        spec = executor.new_request().with_url_path("/items").with_param("page", 1).build()

        assert [item['id'] for item in executor.execute_paged(spec)] == [1, 2, 3, 4, 5]
        assert [call.url for call in connector.calls] == [f"{API}/items?page=1", f"{API}/items?page=2"]

    def test_fetches_pages_on_demand(self, items, connector):
        connector.queue(page_one())
        assert items.first() == {'id': 1}
        assert len(connector.calls) == 1

    def test_iter_pages(self, items, connector):
        connector.queue(page_one(), page_two())
        assert [len(page) for page in items.iter_pages()] == [3, 2]

    def test_reiteration_fetches_again(self, items, connector):
        connector.queue(page_one(), page_two(), page_one(), page_two())
        assert items.to_list() == items.to_list()
        assert len(connector.calls) == 4

    def test_empty_collection(self, items, connector):
        connector.queue(make_response(200, []), make_response(200, []))
        assert items.to_list() == []
        assert items.first() is None

    def test_page_failure_retried(self, items, connector, clock):
        connector.queue(page_one(), make_response(502), page_two())
        assert len(items.to_list()) == 5
        assert clock.sleeps == [1.0]

    def test_items_key(self, executor, connector):
        connector.queue(make_response(200, {'total_count': 2, 'items': [{'id': 1}, {'id': 2}]}))
        results = executor.new_request().with_url_path("/search/repositories").with_param("q", "cli") \
            .list(items_key="items")
        assert results.to_list() == [{'id': 1}, {'id': 2}]

    def test_object_page_without_items(self, items, connector):
        connector.queue(make_response(200, {'message': 'not a page'}))
        with pytest.raises(DecodeError):
            items.to_list()

    def test_shape_and_wrap(self, executor, connector):
        connector.queue(page_one(), page_two())
        seen = []

        def wrap(item):
            seen.append(item)

        results = executor.new_request().with_url_path("/items") \
            .list(lambda data: data['id'] * 10, wrap=wrap)
        assert results.to_list() == [10, 20, 30, 40, 50]
        assert seen == [10, 20, 30, 40, 50]

    def test_page_size(self, items, connector):
        connector.queue(make_response(200, []))
        items.with_page_size(100).to_list()
        assert connector.calls[0].url == f"{API}/items?per_page=100"
        with pytest.raises(ValueError):
            items.with_page_size(0)
