"""Tests for sdeck.conf -- config persistence and the Settings object."""

import json
import os
import tempfile
import unittest
from unittest.mock import patch

from sdeck.conf import (
    DEFAULT_BRIGHTNESS,
    Settings,
    get_saved_brightness,
    get_saved_cache_images,
    get_saved_cache_ttl,
    get_saved_min_up_time,
    load_config,
    save_config,
)
from sdeck.constants import CACHE_TTL_S, MIN_UP_TIME_S


class ConfTestCase(unittest.TestCase):
    """Redirects CONFIG_PATH/CONFIG_DIR into a temp directory."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.config_dir = os.path.join(self._tmp.name, 'sdeck')
        self.config_path = os.path.join(self.config_dir, 'config.json')
        patches = [
            patch('sdeck.conf.CONFIG_PATH', self.config_path),
            patch('sdeck.conf.CONFIG_DIR', self.config_dir),
        ]
        for p in patches:
            p.start()
            self.addCleanup(p.stop)
        self.addCleanup(self._tmp.cleanup)

    def write_raw(self, text):
        os.makedirs(self.config_dir, exist_ok=True)
        with open(self.config_path, 'w') as f:
            f.write(text)

    def read_json(self):
        with open(self.config_path) as f:
            return json.load(f)


class TestLoadSave(ConfTestCase):

    def test_missing_file(self):
        self.assertEqual(load_config(), {})

    def test_corrupt_file(self):
        self.write_raw('{bad json')
        self.assertEqual(load_config(), {})

    def test_non_object(self):
        self.write_raw('[1, 2, 3]')
        self.assertEqual(load_config(), {})

    def test_save_creates_dir(self):
        save_config({'brightness': 40})
        self.assertEqual(self.read_json(), {'brightness': 40})


class TestTypedAccessors(ConfTestCase):

    def test_defaults(self):
        self.assertEqual(get_saved_brightness(), DEFAULT_BRIGHTNESS)
        self.assertTrue(get_saved_cache_images())
        self.assertEqual(get_saved_cache_ttl(), CACHE_TTL_S)
        self.assertAlmostEqual(get_saved_min_up_time(), MIN_UP_TIME_S)

    def test_saved_values(self):
        save_config({'brightness': 15, 'cache_images': False,
                     'cache_ttl_s': 30, 'min_up_time_ms': 250})
        self.assertEqual(get_saved_brightness(), 15)
        self.assertFalse(get_saved_cache_images())
        self.assertEqual(get_saved_cache_ttl(), 30.0)
        self.assertAlmostEqual(get_saved_min_up_time(), 0.25)

    def test_invalid_values_fall_back(self):
        save_config({'brightness': 500, 'cache_ttl_s': -1, 'min_up_time_ms': 'soon'})
        self.assertEqual(get_saved_brightness(), DEFAULT_BRIGHTNESS)
        self.assertEqual(get_saved_cache_ttl(), CACHE_TTL_S)
        self.assertAlmostEqual(get_saved_min_up_time(), MIN_UP_TIME_S)

    def test_non_numeric_brightness(self):
        save_config({'brightness': 'bright'})
        self.assertEqual(get_saved_brightness(), DEFAULT_BRIGHTNESS)


class TestSettings(ConfTestCase):

    def test_reads_config(self):
        save_config({'brightness': 33, 'cache_images': False})
        s = Settings()
        self.assertEqual(s.brightness, 33)
        self.assertFalse(s.cache_images)

    def test_set_brightness_persists(self):
        save_config({'cache_images': False})
        s = Settings()
        s.set_brightness(80)
        self.assertEqual(s.brightness, 80)
        self.assertEqual(self.read_json(), {'cache_images': False, 'brightness': 80})

    def test_set_brightness_no_persist(self):
        s = Settings()
        s.set_brightness(5, persist=False)
        self.assertEqual(s.brightness, 5)
        self.assertFalse(os.path.exists(self.config_path))

    def test_set_brightness_out_of_range(self):
        s = Settings()
        with self.assertRaises(ValueError):
            s.set_brightness(101)
        self.assertFalse(os.path.exists(self.config_path))

    def test_set_cache_images(self):
        s = Settings()
        s.set_cache_images(False)
        self.assertFalse(s.cache_images)
        self.assertFalse(self.read_json()['cache_images'])

    def test_reload(self):
        s = Settings()
        save_config({'min_up_time_ms': 50})
        s.reload()
        self.assertAlmostEqual(s.min_up_time_s, 0.05)


if __name__ == '__main__':
    unittest.main()
