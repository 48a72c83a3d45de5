from pointcloudvisualizer.model.io import PcdIO, create_timestamp_string


def touch(folder, name):
    path = folder / name
    path.write_text("")
    return path


def test_old_files_are_removed_recent_kept(tmp_path):
    old = touch(tmp_path, "visualizer.20000101.000000.000.s.0-view.a.pcd")
    recent = touch(tmp_path, f"visualizer.{create_timestamp_string()}.s.0-view.b.pcd")

    removed = PcdIO.clear_saved_data(1, tmp_path)

    assert removed == [old]
    assert not old.exists()
    assert recent.exists()


def test_foreign_files_are_untouched(tmp_path):
    other = touch(tmp_path, "notes.txt")
    not_a_timestamp = touch(tmp_path, "visualizer.backup.pcd")
    (tmp_path / "visualizer.20000101.000000.000.folder").mkdir()

    assert PcdIO.clear_saved_data(1, tmp_path) == []
    assert other.exists()
    assert not_a_timestamp.exists()


def test_threshold_in_hours(tmp_path):
    three_hours_ago = touch(tmp_path, f"visualizer.{create_timestamp_string(3)}.s.0-view.a.pcd")

    assert PcdIO.clear_saved_data(5, tmp_path) == []
    assert PcdIO.clear_saved_data(2, tmp_path) == [three_hours_ago]


def test_missing_folder_is_noop(tmp_path):
    assert PcdIO.clear_saved_data(1, tmp_path / "missing") == []
