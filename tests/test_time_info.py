import unittest
import datetime

import numpy as np
import cftime

import pydynvar


class TestTimeInfo(unittest.TestCase):
    def test_fractional_year(self):
        time = cftime.datetime(2001, 7, 2, 12, calendar="noleap")
        self.assertEqual(pydynvar.fractional_year(time), 2001.5)

        time = cftime.datetime(2000, 7, 1, calendar="360_day")
        self.assertEqual(pydynvar.fractional_year(time), 2000.5)

        self.assertEqual(pydynvar.fractional_year(datetime.date(2001, 1, 1)), 2001.0)
        self.assertAlmostEqual(
            pydynvar.fractional_year(datetime.datetime(2000, 12, 31)),
            2000.0 + 365.0 / 366.0,
            places=12,
        )

    def test_invalid_years(self):
        with self.assertRaises(pydynvar.ConfigurationError):
            pydynvar.TimeInfo([])
        with self.assertRaises(pydynvar.ConfigurationError):
            pydynvar.TimeInfo([2000, 2000, 2010])
        with self.assertRaises(pydynvar.ConfigurationError):
            pydynvar.TimeInfo([2010, 2000])
        with self.assertRaises(pydynvar.ConfigurationError):
            pydynvar.TimeInfo([2000.5, 2001.0])
        time_info = pydynvar.TimeInfo(np.array([2000.0, 2005.0]))
        self.assertEqual(time_info.get_year(1), 2005)

    def test_not_ready(self):
        time_info = pydynvar.TimeInfo([2000, 2005, 2010])
        self.assertIsNone(time_info.current_year)
        with self.assertRaises(pydynvar.NotReadyError):
            time_info.resolve_nearest()
        with self.assertRaises(pydynvar.NotReadyError):
            time_info.resolve_bracket()

        # An explicit year can always be resolved
        self.assertEqual(time_info.resolve_nearest(2006), 1)

    def test_resolve_nearest(self):
        time_info = pydynvar.TimeInfo([2000, 2005, 2010])
        self.assertEqual(time_info.nyears, 3)
        for year, index in [
            (1990, 0),
            (2000, 0),
            (2004.99, 0),
            (2005, 1),
            (2007, 1),
            (2010, 2),
            (2011, 2),
            (2500, 2),
        ]:
            time_info.set_current_year(year)
            self.assertEqual(time_info.resolve_nearest(), index, f"year {year}")

    def test_resolve_bracket(self):
        time_info = pydynvar.TimeInfo([2000, 2010, 2020])

        self.assertEqual(time_info.resolve_bracket(1999.5), (0, 0, 0.0))
        self.assertTrue(time_info.is_before_time_series(1999.5))
        self.assertFalse(time_info.is_within_bounds(1999.5))

        self.assertEqual(time_info.resolve_bracket(2000), (0, 1, 0.0))
        self.assertTrue(time_info.is_within_bounds(2000))

        lower, upper, weight = time_info.resolve_bracket(2003)
        self.assertEqual((lower, upper), (0, 1))
        self.assertAlmostEqual(weight, 0.3, places=14)

        lower, upper, weight = time_info.resolve_bracket(2010)
        self.assertEqual((lower, upper, weight), (1, 2, 0.0))

        lower, upper, weight = time_info.resolve_bracket(2019.5)
        self.assertEqual((lower, upper), (1, 2))
        self.assertAlmostEqual(weight, 0.95, places=14)

        self.assertEqual(time_info.resolve_bracket(2020), (2, 2, 0.0))
        self.assertTrue(time_info.is_after_time_series(2020))
        self.assertEqual(time_info.resolve_bracket(2100), (2, 2, 0.0))

        time_info = pydynvar.TimeInfo([2000])
        self.assertEqual(time_info.resolve_bracket(1990), (0, 0, 0.0))
        self.assertEqual(time_info.resolve_bracket(2000), (0, 0, 0.0))
        self.assertEqual(time_info.resolve_nearest(2050), 0)

    def test_year_position(self):
        time = cftime.datetime(2000, 12, 31, calendar="noleap")
        timestep = datetime.timedelta(days=1)

        time_info = pydynvar.TimeInfo([2000, 2001])
        time_info.update(time, timestep)
        self.assertEqual(time_info.resolve_nearest(), 0)

        time_info = pydynvar.TimeInfo(
            [2000, 2001], year_position=pydynvar.YearPosition.END_OF_TIMESTEP
        )
        time_info.update(time, timestep)
        self.assertEqual(time_info.current_year, 2001.0)
        self.assertEqual(time_info.resolve_nearest(), 1)

        with self.assertRaises(pydynvar.ConfigurationError):
            time_info.update(time)


if __name__ == "__main__":
    unittest.main()
