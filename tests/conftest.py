import pytest

from attrition_pipeline import load_data, clean_data, engineer_features

from hr_data import make_hr_frame


@pytest.fixture(scope="session")
def raw_csv(tmp_path_factory):
    p = tmp_path_factory.mktemp("data") / "hr.csv"
    make_hr_frame().to_csv(p, index=False)
    return str(p)


@pytest.fixture(scope="session")
def small_csv(tmp_path_factory):
    p = tmp_path_factory.mktemp("data") / "hr_small.csv"
    make_hr_frame(n=300, seed=1).to_csv(p, index=False)
    return str(p)


@pytest.fixture(scope="session")
def raw_frame(raw_csv):
    return load_data(raw_csv)


@pytest.fixture(scope="session")
def clean_frame(raw_frame):
    return clean_data(raw_frame)


@pytest.fixture(scope="session")
def model_frame(clean_frame):
    return engineer_features(clean_frame)


@pytest.fixture(scope="session")
def small_frame(small_csv):
    return engineer_features(clean_data(load_data(small_csv)))
