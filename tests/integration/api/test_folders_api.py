import pytest


@pytest.mark.integration
def test_create_and_list_folders(client, api, put_image):
    put_image("photos/a.png")

    created = client.post(f"{api}/folders", json={"name": "Summer 2026"})
    listed = client.get(f"{api}/folders")

    assert created.json() == {"ok": True, "folder": "Summer-2026"}
    assert listed.json()["folders"] == ["Summer-2026", "photos"]


@pytest.mark.integration
def test_rename_folder(client, api, put_image, store):
    put_image("photos/a.png")

    response = client.put(f"{api}/folders", json={"from": "photos", "to": "pictures"})

    assert response.status_code == 200
    assert response.json()["moved"] == 1
    assert store.get("pictures/a.png") is not None


@pytest.mark.integration
def test_rename_onto_non_empty_folder_conflicts(client, api, put_image):
    put_image("photos/a.png")
    put_image("pictures/b.png")

    response = client.put(f"{api}/folders", json={"from": "photos", "to": "pictures"})

    assert response.status_code == 409
    assert response.json()["code"] == "target_exists"


@pytest.mark.integration
def test_delete_folder(client, api, put_image, store):
    put_image("photos/a.png")

    response = client.delete(f"{api}/folders", params={"name": "photos"})

    assert response.json()["trashed"] == 1
    assert store.get("trash/photos/a.png") is not None


@pytest.mark.integration
def test_orphan_cleanup(client, api, put_image):
    put_image("a.png")
    client.post(f"{api}/metadata/batch", json={"keys": ["a.png"], "addTags": ["x"]})
    client.post(f"{api}/images/delete", json={"keys": ["a.png"], "permanent": True})

    response = client.post(f"{api}/maintenance/orphans")

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["removedMeta"] == 0
