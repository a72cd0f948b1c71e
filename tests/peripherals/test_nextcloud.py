from fakes import FakeResponse, FakeSession, make_storage
from storage_copy.peripherals.base import ParentFolder
from storage_copy.peripherals.nextcloud import NextcloudProvider
from storage_copy.schemas.results import StorageErrorCode
from storage_copy.utils.crypto import encrypt_token


def _multistatus(*entries):
    responses = "".join(
        f"<d:response><d:href>{href}</d:href><d:propstat><d:prop><oc:fileid>{file_id}</oc:fileid>"
        f"</d:prop><d:status>HTTP/1.1 200 OK</d:status></d:propstat></d:response>"
        for href, file_id in entries
    )
    return (
        '<?xml version="1.0"?><d:multistatus xmlns:d="DAV:" xmlns:oc="http://owncloud.org/ns">'
        f"{responses}</d:multistatus>"
    ).encode()


def _storage():
    return make_storage(token_ciphertext=encrypt_token("app-password"))


def test_copy_returns_folder_id_of_the_copy():
    session = FakeSession(
        FakeResponse(201),
        FakeResponse(207, content=_multistatus(("/remote.php/dav/files/admin/Projects/Copy%20(2)/", "555"))),
    )
    command = NextcloudProvider(session=session).copy_template_folder()

    result = command.call(_storage(), source_path="/Projects/Template (1)/", destination_path="/Projects/Copy (2)/")

    assert result.success
    assert result.result == {"id": "555", "url": None}
    copy_request, propfind_request = session.requests
    assert copy_request.method == "COPY"
    assert copy_request.url.endswith("/remote.php/dav/files/admin/Projects/Template%20%281%29")
    assert copy_request.headers["Destination"].endswith("/Projects/Copy%20%282%29")
    assert copy_request.headers["Overwrite"] == "F"
    assert copy_request.auth == ("admin", "app-password")
    assert propfind_request.method == "PROPFIND"
    assert propfind_request.headers["Depth"] == "0"


def test_copy_with_blank_path_makes_no_request():
    session = FakeSession()
    command = NextcloudProvider(session=session).copy_template_folder()

    result = command.call(_storage(), source_path="  ", destination_path="/Projects/Copy (2)/")

    assert result.failure
    assert result.errors.code == StorageErrorCode.INVALID_ARGUMENT
    assert session.requests == []


def test_copy_onto_existing_folder_is_a_conflict():
    session = FakeSession(FakeResponse(412))
    command = NextcloudProvider(session=session).copy_template_folder()

    result = command.call(_storage(), source_path="/Projects/Template (1)/", destination_path="/Projects/Copy (2)/")

    assert result.errors.code == StorageErrorCode.CONFLICT
    assert result.message == "The copy would overwrite an already existing folder"


def test_copy_status_mapping():
    expected = {
        401: StorageErrorCode.UNAUTHORIZED,
        403: StorageErrorCode.FORBIDDEN,
        404: StorageErrorCode.NOT_FOUND,
        409: StorageErrorCode.CONFLICT,
        500: StorageErrorCode.ERROR,
    }
    for status_code, code in expected.items():
        session = FakeSession(FakeResponse(status_code))
        result = NextcloudProvider(session=session).copy_template_folder().call(
            _storage(), source_path="/a/", destination_path="/b/"
        )
        assert result.errors.code == code

    session = FakeSession(FakeResponse(500))
    result = NextcloudProvider(session=session).copy_template_folder().call(
        _storage(), source_path="/a/", destination_path="/b/"
    )
    assert result.errors.data == {"status_code": 500}


def test_deep_listing_excludes_the_folder_itself():
    body = _multistatus(
        ("/remote.php/dav/files/admin/Projects/Copy%20(2)/", "555"),
        ("/remote.php/dav/files/admin/Projects/Copy%20(2)/docs/", "556"),
        ("/remote.php/dav/files/admin/Projects/Copy%20(2)/docs/a.txt", "557"),
    )
    session = FakeSession(FakeResponse(207, content=body))
    query = NextcloudProvider(session=session).folder_files_file_ids_deep()

    result = query.call(_storage(), ParentFolder(location="/Projects/Copy (2)/"))

    assert result.result == {
        "/Projects/Copy (2)/docs/": "556",
        "/Projects/Copy (2)/docs/a.txt": "557",
    }
    assert session.requests[0].headers["Depth"] == "infinity"


def test_files_info_reads_ocs_payload():
    payload = {"ocs": {"data": {
        "11": {"statuscode": 200, "status": "OK", "name": "a.txt", "path": "Projects/Template (1)/docs/a.txt"},
        "12": {"statuscode": 404, "status": "Not Found"},
    }}}
    session = FakeSession(FakeResponse(200, json_body=payload))
    query = NextcloudProvider(session=session).files_info()

    result = query.call(_storage(), "user-1", ["11", "12"])

    first, second = result.result
    assert first.location == "/Projects/Template (1)/docs/a.txt"
    assert first.status_code == 200
    assert second.location is None
    assert second.status_code == 404
    assert session.requests[0].json == {"fileIds": ["11", "12"]}


def test_files_info_without_ids_makes_no_request():
    session = FakeSession()

    result = NextcloudProvider(session=session).files_info().call(_storage(), "user-1", [])

    assert result.result == []
    assert session.requests == []
