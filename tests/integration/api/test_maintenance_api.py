import pytest

from imagehost.schemas.meta import ShareMeta, ShareMetaEntry


@pytest.mark.integration
def test_broken_links_report(client, api, put_image, ctx):
    put_image("a.png")
    ctx.meta.save(ShareMeta(shares={"s1": ShareMetaEntry(id="s1", items=["a.png", "gone.png"])}))

    response = client.get(f"{api}/maintenance/broken-links")

    assert response.status_code == 200
    body = response.json()
    assert body["missing"] == {"meta": [], "hashes": [], "shares": {"s1": ["gone.png"]}}
    assert body["counts"]["shares"] == 1


@pytest.mark.integration
def test_duplicates_scan_with_compute(client, api, put_image):
    put_image("a.png", body=b"same")
    put_image("photos/b.png", body=b"same")

    response = client.get(f"{api}/maintenance/duplicates", params={"compute": "true"})

    assert response.status_code == 200
    body = response.json()
    assert body["computed"] == 2
    assert body["totalHashes"] == 2
    assert body["duplicates"][0]["keys"] == ["a.png", "photos/b.png"]


@pytest.mark.integration
def test_duplicates_scan_rejects_negative_limit(client, api):
    response = client.get(f"{api}/maintenance/duplicates", params={"limit": -1})
    assert response.status_code == 422
