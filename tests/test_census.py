import pytest

from zip_mapping import census
from zip_mapping.diagnostics import Diagnostics
from tests.conftest import serve


ACS_ROWS = [
    ["NAME", "B19013_001E", "zip code tabulation area"],
    ["ZCTA5 10001", "96787", "10001"],
    ["ZCTA5 10002", "-666666666", "10002"],
    ["ZCTA5 11201", "151000", "11201"],
]


def test_fetch_income_uses_cache(http_session):
    fake = serve(http_session, ACS_ROWS)
    diagnostics = Diagnostics()

    first = census.fetch_income(year=2022, api_key="k", session=http_session, diagnostics=diagnostics)
    second = census.fetch_income(year=2022, api_key="k", session=http_session)

    assert [r.region_id for r in first] == ["10001", "11201"]
    assert first == second
    assert diagnostics.dropped_income_rows == 1
    assert len(fake.calls) == 1
    assert fake.calls[0].startswith("https://api.census.gov/data/2022/acs/acs5?")
    assert "for=zip+code+tabulation+area%3A%2A" in fake.calls[0]


def test_http_error_raises(http_session):
    serve(http_session, "error: unknown variable", status=400)
    with pytest.raises(RuntimeError, match="HTTP 400"):
        census.get_acs_zcta("B19013_001E", 2022, "k", http_session)


def test_non_json_raises_and_is_not_kept(http_session):
    fake = serve(http_session, "<html>maintenance</html>")
    for _ in range(2):
        with pytest.raises(RuntimeError, match="JSON"):
            census.get_acs_zcta("B19013_001E", 2022, "k", http_session)
    assert len(fake.calls) == 2


def test_load_census_export(tmp_path):
    path = tmp_path / "ACSDT5Y2022.B19013-Data.csv"
    path.write_text(
        '"GEO_ID","NAME","B19013_001E","B19013_001M",\n'
        '"Geography","Geographic Area Name","Estimate!!Median household income","Margin of Error",\n'
        '"860Z200US10001","ZCTA5 10001","96,787","12,000",\n'
        '"860Z200US10004","ZCTA5 10004","250,000+","***",\n'
        '"860Z200US10006","ZCTA5 10006","-","**",\n',
        encoding="utf-8",
    )
    rows = census.load_income_csv(path)
    assert [(r.region_id, r.median_income) for r in rows] == [("10001", 96787.0), ("10004", 250000.0)]


def test_load_plain_population_csv(tmp_path):
    path = tmp_path / "population.csv"
    path.write_text("zcta,B01003_001E\n10001,27613\n10002,0\n", encoding="utf-8")
    assert [(r.region_id, r.population) for r in census.load_population_csv(path)] == [("10001", 27613)]


def test_missing_column(tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text("zcta,other\n10001,1\n", encoding="utf-8")
    with pytest.raises(ValueError):
        census.load_population_csv(path)
