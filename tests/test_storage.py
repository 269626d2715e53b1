from minecraft_whitelist_manager.storage import LocalFileService


def test_local_file_round_trip(tmp_path):
    service = LocalFileService(tmp_path)
    handle = service.get_file("whitelist.json")

    assert not handle.exists()
    handle.write_text('[{"name": "Steve"}]')
    assert handle.exists()
    assert handle.read_text() == '[{"name": "Steve"}]'
    assert (tmp_path / "whitelist.json").read_text(encoding="utf-8") == '[{"name": "Steve"}]'
    assert not (tmp_path / "whitelist.json.tmp").exists()

    handle.delete()
    assert not handle.exists()
    handle.delete()


def test_missing_server_directory(tmp_path):
    assert LocalFileService(tmp_path / "nope").get_file("whitelist.json") is None
