import pytest

from exemeta.services.metadata import (
    VERSION_FIELDS,
    MetadataError,
    build_custom_data,
    describe,
    extract_metadata,
    is_installer,
)


def test_extract_metadata_missing_file(tmp_path):
    with pytest.raises(MetadataError):
        extract_metadata(str(tmp_path / "absent.exe"))


def test_extract_metadata_rejects_non_pe_file(tmp_path):
    fake = tmp_path / "tool.exe"
    fake.write_bytes(b"this is not a portable executable")

    with pytest.raises(MetadataError):
        extract_metadata(str(fake))


def test_installer_detected_from_file_name(tmp_path):
    setup = tmp_path / "Setup_Tool.exe"
    setup.write_bytes(b"MZ")

    assert is_installer(str(setup))


def test_installer_detected_from_metadata(tmp_path):
    tool = tmp_path / "tool.exe"
    tool.write_bytes(b"MZ")

    assert is_installer(str(tool), {"FileDescription": "Acme InstallShield Wizard"})
    assert not is_installer(str(tool), {"FileDescription": "Acme Editor"})


def test_installer_requires_existing_exe(tmp_path):
    assert not is_installer(str(tmp_path / "setup.exe"))

    script = tmp_path / "setup.msi"
    script.write_bytes(b"")
    assert not is_installer(str(script))


def test_build_custom_data(tmp_path):
    tool = tmp_path / "tool.exe"
    tool.write_bytes(b"MZ")

    assert build_custom_data(str(tool), {}) == {"FileName": "tool.exe", "IsInstaller": False}


def test_describe_lists_every_version_field():
    text = describe({"ProductName": "Outil", "FileVersion": "1.2.3"})

    lines = text.splitlines()
    assert len(lines) == len(VERSION_FIELDS)
    assert "Version du fichier : 1.2.3" in lines
    assert "Nom du produit : Outil" in lines
