import shutil
import sqlite3
import tempfile
import threading
import unittest
from contextlib import closing
from pathlib import Path

from pocketdb.drivers.base import error_of
from pocketdb.drivers.sqlite import SQLiteTableDriver
from pocketdb.engine import Store
from pocketdb.errors import PersistenceError


class SQLiteTableDriverTests(unittest.TestCase):
    def setUp(self) -> None:
        self.driver = SQLiteTableDriver()

    def tearDown(self) -> None:
        self.driver.close()

    def test_write_then_read(self) -> None:
        self.driver.write("app.people", '{"a":1}').result(timeout=5)
        self.driver.write("app.people", '{"a":2}').result(timeout=5)
        self.driver.write("other.pets", '{"b":1}').result(timeout=5)

        self.assertEqual(self.driver.read_all("app.").result(timeout=5), ['{"a":2}'])

    def test_prefix_is_not_a_pattern(self) -> None:
        self.driver.write("a_p.people", "{}").result(timeout=5)
        self.driver.write("abp.people", "[]").result(timeout=5)
        self.assertEqual(self.driver.read_all("a_p.").result(timeout=5), ["{}"])

    def test_quoted_table_names(self) -> None:
        self.driver.write('app.we"ird', "{}").result(timeout=5)
        self.assertEqual(self.driver.read_all("app.").result(timeout=5), ["{}"])

    def test_timed_out_write_leaves_driver_usable(self) -> None:
        self.driver.write("app.a", '{"v":1}').result(timeout=5)

        slow = self.driver.write("app.a", '{"v":2}', timeout=1e-9)
        self.assertIsInstance(slow.exception(timeout=5), PersistenceError)
        self.assertIn("timed out", str(slow.exception()))

        self.driver.write("app.b", "{}").result(timeout=5)
        self.assertEqual(len(self.driver.read_all("app.").result(timeout=5)), 2)

    def test_timed_out_read_leaves_driver_usable(self) -> None:
        self.driver.write("app.a", "{}").result(timeout=5)

        slow = self.driver.read_all("app.", timeout=1e-9)
        self.assertIsInstance(slow.exception(timeout=5), PersistenceError)

        self.driver.write("app.b", "{}").result(timeout=5)
        self.assertEqual(self.driver.read_all("app.").result(timeout=5), ["{}", "{}"])

    def test_cancelled_read_leaves_driver_usable(self) -> None:
        self.driver.write("app.a", "{}").result(timeout=5)
        gate = threading.Event()
        # Park the driver's loop so the next read stays pending.
        self.driver._loop.call_soon_threadsafe(gate.wait, 5)

        pending = self.driver.read_all("app.")
        self.assertTrue(pending.cancel())
        self.assertIsInstance(error_of(pending), PersistenceError)
        gate.set()

        self.driver.write("app.b", "{}").result(timeout=5)
        self.assertEqual(self.driver.read_all("app.").result(timeout=5), ["{}", "{}"])

    def test_cancelled_restore_reports_through_callback(self) -> None:
        store = Store(self.driver, namespace="app")
        store.collection("people").insert({"_id": "1"})
        store.commit("people").result(timeout=5)
        gate = threading.Event()
        self.driver._loop.call_soon_threadsafe(gate.wait, 5)

        errors = []
        restoring = Store(self.driver, namespace="app").restore(errors.append)
        self.assertTrue(restoring.cancel())
        gate.set()

        self.assertIsInstance(errors[0], PersistenceError)
        fresh = Store(self.driver, namespace="app")
        self.assertEqual(fresh.restore().result(timeout=5), ["people"])

    def test_closed_driver_fails_through_future(self) -> None:
        self.driver.close()
        self.assertTrue(self.driver.closed)
        future = self.driver.write("app.people", "{}")
        self.assertIsInstance(future.exception(), PersistenceError)


class SQLiteStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = Path(tempfile.mkdtemp(prefix="pocketdb-tests-"))
        self.path = self.tmpdir / "pocket.db"

    def tearDown(self) -> None:
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_round_trip_across_drivers(self) -> None:
        with SQLiteTableDriver(self.path) as driver:
            store = Store(driver, namespace="app")
            people = store.collection("people")
            first = people.insert({"forename": "Foo", "surname": "Bar"})
            second = people.insert({"forename": "Bar", "surname": "Foo"})

            done = threading.Event()
            errors = []

            def on_commit(error):
                errors.append(error)
                done.set()

            store.commit("people", on_commit)
            self.assertTrue(done.wait(5))
            self.assertEqual(errors, [None])

        with SQLiteTableDriver(self.path) as driver:
            fresh = Store(driver, namespace="app")
            self.assertEqual(fresh.restore().result(timeout=5), ["people"])
            self.assertEqual(fresh.collection("people").find(), [first, second])

    def test_one_table_with_a_single_json_row(self) -> None:
        with SQLiteTableDriver(self.path) as driver:
            store = Store(driver, namespace="app")
            store.collection("people").insert({"_id": "1"})
            store.commit("people").result(timeout=5)
            store.commit("people").result(timeout=5)

        with closing(sqlite3.connect(self.path)) as conn:
            rows = conn.execute('SELECT json FROM "app.people"').fetchall()
        self.assertEqual(len(rows), 1)
        self.assertIn('"_id":"1"', rows[0][0])

    def test_table_without_json_row_is_skipped_with_warning(self) -> None:
        with SQLiteTableDriver(self.path) as driver:
            driver.write("app.people", "{}").result(timeout=5)
            driver.write("app.empty", "{}").result(timeout=5)

        with closing(sqlite3.connect(self.path)) as conn:
            conn.execute('DELETE FROM "app.empty"')
            conn.commit()

        with SQLiteTableDriver(self.path) as driver:
            with self.assertLogs("pocketdb.drivers.sqlite", level="WARNING"):
                blobs = driver.read_all("app.").result(timeout=5)
        self.assertEqual(blobs, ["{}"])

    def test_restore_callback_runs_after_registration(self) -> None:
        with SQLiteTableDriver(self.path) as driver:
            Store(driver, namespace="app").collection("people").commit().result(timeout=5)

            fresh = Store(driver, namespace="app")
            done = threading.Event()
            seen = []

            def on_restore(error):
                seen.append((error, "people" in fresh))
                done.set()

            fresh.restore(on_restore)
            self.assertTrue(done.wait(5))
            self.assertEqual(seen, [(None, True)])

    def test_auto_commit(self) -> None:
        with SQLiteTableDriver(self.path) as driver:
            store = Store(driver, namespace="app", auto_commit=True)
            store.collection("people").insert({"_id": "1"})
            # Commits on one driver are serialized; waiting on a later one covers the earlier.
            store.commit("people").result(timeout=5)

            fresh = Store(driver, namespace="app")
            fresh.restore().result(timeout=5)
            self.assertEqual(fresh.collection("people").find_one("1"), {"_id": "1"})


if __name__ == "__main__":
    unittest.main()
