import os

import environ
from django.conf import settings
from django.db import connection
from django.test import SimpleTestCase


class SettingsTests(SimpleTestCase):
    def test_test_runs_are_detected(self):
        self.assertTrue(settings.TESTING)

    def test_database_url_selects_the_backend(self):
        url = os.environ.get('DATABASE_URL')
        if not url:
            self.assertEqual(connection.vendor, 'sqlite')
        else:
            self.assertEqual(connection.settings_dict['ENGINE'], environ.Env.db_url_config(url)['ENGINE'])
