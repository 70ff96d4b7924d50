import unittest

from mentor.study_timer import StudyTimer, format_elapsed


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestStudyTimer(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.timer = StudyTimer(clock=self.clock)

    def test_format_elapsed(self):
        self.assertEqual(format_elapsed(0), "00:00:00")
        self.assertEqual(format_elapsed(3725), "01:02:05")

    def test_counts_only_while_started(self):
        self.clock.now += 30
        self.assertEqual(self.timer.elapsed(), 0)

        self.timer.start()
        self.clock.now += 90.7
        self.assertEqual(self.timer.elapsed(), 90)
        self.assertTrue(self.timer.running)

        self.timer.pause()
        self.clock.now += 500
        self.assertEqual(self.timer.elapsed(), 90)

        self.timer.start()
        self.clock.now += 10
        self.assertEqual(self.timer.to_dict(), {"running": True, "seconds": 100, "display": "00:01:40"})

    def test_start_twice_does_not_restart(self):
        self.timer.start()
        self.clock.now += 5
        self.timer.start()
        self.clock.now += 5
        self.assertEqual(self.timer.elapsed(), 10)

    def test_reset(self):
        self.timer.start()
        self.clock.now += 60
        self.timer.reset()
        self.assertFalse(self.timer.running)
        self.assertEqual(self.timer.elapsed(), 0)


if __name__ == "__main__":
    unittest.main()
