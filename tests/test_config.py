import unittest
import os.path
import tempfile
import logging
import textwrap

import numpy as np
import xarray as xr

import pydynvar
import pydynvar.config
import pydynvar.run

CONFIGURATION = """
time:
  start: 2000-01-01
  stop: 2004-01-01
  timestep: 31536000
  calendar: noleap
datasets:
  landuse:
    path: {path}
    year_position: end
variables:
  pct_glacier:
    dataset: landuse
    variable: PCT_GLACIER
    dim1: gridcell
    shape: 2
    conversion_factor: 100.
    interpolate: true
  pct_urban:
    dataset: landuse
    variable: PCT_URBAN
    dim1: gridcell
    shape: [2, 3]
    conversion_factor: 100.
    validate_distribution: true
"""


class TestConfig(unittest.TestCase):
    def setUp(self):
        self.logger = logging.getLogger("test_config")
        self.logger.setLevel(logging.ERROR)
        tempdir = tempfile.TemporaryDirectory()
        self.addCleanup(tempdir.cleanup)
        self.tempdir = tempdir.name

        urban = np.full((3, 2, 3), 100.0 / 3)
        urban[:, :, 2] = 100.0 - 2 * urban[:, :, 0]
        ds = xr.Dataset(
            dict(
                YEAR=("time", [2000, 2002, 2004]),
                PCT_GLACIER=(
                    ("time", "gridcell"),
                    [[0.0, 40.0], [10.0, 30.0], [20.0, 20.0]],
                ),
                PCT_URBAN=(("time", "gridcell", "density"), urban),
            )
        )
        self.nc_path = os.path.join(self.tempdir, "landuse.nc")
        ds.to_netcdf(self.nc_path)

    def write(self, text: str) -> str:
        path = os.path.join(self.tempdir, "config.yaml")
        with open(path, "w") as f:
            f.write(text.format(path=self.nc_path))
        return path

    def test_configure(self):
        config = pydynvar.config.configure(self.write(CONFIGURATION))
        self.assertEqual(config["time/calendar"], "noleap")
        self.assertEqual(config.get("time/missing", 5), 5)
        with self.assertRaisesRegex(
            pydynvar.ConfigurationError, "time/missing is required"
        ):
            config.require("time/missing")

        datasets = config["datasets"]
        landuse = datasets.get_dataset("landuse", logger=self.logger)
        self.addCleanup(landuse.close)
        self.assertEqual(
            landuse.time_info.year_position, pydynvar.YearPosition.END_OF_TIMESTEP
        )
        self.assertEqual(landuse.slice_count, 3)

        variables = config["variables"]
        glacier = variables.get_variable(
            "pct_glacier", {"landuse": landuse}, logger=self.logger
        )
        self.assertIsInstance(glacier, pydynvar.InterpolatedVariable)
        self.assertEqual(glacier.name, "PCT_GLACIER")
        self.assertEqual(glacier.shape, (2,))
        self.assertEqual(glacier.conversion_factor, 100.0)
        urban = variables.get_variable(
            "pct_urban", {"landuse": landuse}, logger=self.logger
        )
        self.assertIsInstance(urban, pydynvar.UninterpolatedVariable)
        self.assertEqual(urban.shape, (2, 3))
        self.assertTrue(urban.validate_distribution)

        self.assertEqual(config.check(), ["time/start", "time/stop", "time/timestep"])

        landuse.time_info.set_current_year(2001)
        glacier.read_if_needed()
        np.testing.assert_array_almost_equal(glacier.current_value(), [0.05, 0.35])
        urban.read_if_needed()
        np.testing.assert_array_almost_equal(urban.current_value().sum(axis=1), 1.0)

    def test_invalid(self):
        config = pydynvar.config.configure(
            self.write(
                textwrap.dedent(
                    """
                    datasets:
                      landuse:
                        path: {path}
                        year_position: middle
                    variables:
                      pct_glacier:
                        dataset: surface
                        dim1: gridcell
                        shape: 2
                    """
                )
            )
        )
        with self.assertRaisesRegex(pydynvar.ConfigurationError, "year_position"):
            config["datasets"].get_dataset("landuse")
        with self.assertRaisesRegex(pydynvar.ConfigurationError, "unknown dataset"):
            config["variables"].get_variable("pct_glacier", {})

        with self.assertRaisesRegex(pydynvar.ConfigurationError, "mapping"):
            pydynvar.config.configure(self.write("- 1\n- 2\n"))

    def test_run(self):
        path = self.write(CONFIGURATION)
        pydynvar.run.run([path, "-l", "ERROR"])

        with open(path, "a") as f:
            f.write("unknown: 1\n")
        with self.assertRaises(SystemExit) as cm:
            pydynvar.run.run([path, "-l", "ERROR"])
        self.assertEqual(cm.exception.code, 2)
        pydynvar.run.run([path, "-l", "ERROR", "--force"])


if __name__ == "__main__":
    unittest.main()
