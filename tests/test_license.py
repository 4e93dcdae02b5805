import pytest

from semlakit.errors import MlleError
from semlakit.license import License, LicenseError, LicenseErrorCode


def test_checkout_licensed_feature():
    assert License("lib").checkout_feature("test_licensed_feature") is True


def test_checkout_licensed_feature_bytes():
    assert License().checkout_feature(b"test_licensed_feature") is True


def test_checkout_unlicensed_feature_raises():
    with pytest.raises(LicenseError) as info:
        License().checkout_feature("other_feature")
    assert info.value.domain == 1
    assert info.value.code == LicenseErrorCode.CHECKOUT_FAILURE
    assert str(info.value) == "Feature not licensed"


def test_license_error_is_mlle_error():
    with pytest.raises(MlleError):
        License().checkout_feature("")


def test_checkin_always_succeeds():
    assert License().checkin_feature("anything") is True


def test_context_manager_returns_license():
    with License("path/to/lib") as lic:
        assert lic.libpath == "path/to/lib"
        assert lic.checkout_feature("test_licensed_feature") is True