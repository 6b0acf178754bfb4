"""
Tests for the derived views (overview feeds, transcript, timetable, threads).
"""

import unittest
from datetime import timedelta

from campus_fixtures import course_by_code, make_service, seeded_users

from mycampus import views
from mycampus.errors import InsufficientRole
from mycampus.storage import MemoryStore


class TestOverview(unittest.TestCase):
    def test_upcoming_is_strictly_future_sorted_and_capped(self) -> None:
        service, clock = make_service()
        student, faculty, _ = seeded_users(service)
        cse = course_by_code(service, "CSE101")
        now = clock.now

        service.create_assignment(faculty, cse.id, "Past", now - timedelta(hours=1))
        service.create_assignment(faculty, cse.id, "Due right now", now)
        for h in (6, 3, 1, 5, 2, 4):
            service.create_assignment(faculty, cse.id, f"T+{h}h", now + timedelta(hours=h))

        ov = service.overview(student)
        self.assertEqual([a.title for a in ov.upcoming], ["T+1h", "T+2h", "T+3h", "T+4h", "T+5h"])
        self.assertEqual(ov.course_count, 1)

    def test_latest_announcements_only_from_visible_courses(self) -> None:
        service, clock = make_service()
        student, faculty, _ = seeded_users(service)
        cse = course_by_code(service, "CSE101")
        mat = course_by_code(service, "MAT110")

        for i in range(6):
            clock.advance(minutes=1)
            service.post_announcement(faculty, cse.id, f"News {i}", "...")
        service.post_announcement(faculty, mat.id, "Calculus news", "...")

        titles = [a.title for a in views.latest_announcements(service.dataset, student)]
        self.assertEqual(titles, ["News 5", "News 4", "News 3", "News 2", "News 1"])

    def test_visible_courses_search(self) -> None:
        service, _ = make_service()
        _, faculty, _ = seeded_users(service)
        self.assertEqual([c.code for c in service.visible_courses(faculty, "calc")], ["MAT110"])
        self.assertEqual(len(service.visible_courses(faculty)), 2)


class TestTranscript(unittest.TestCase):
    def test_only_graded_rows_count(self) -> None:
        service, clock = make_service()
        student, faculty, _ = seeded_users(service)
        cse = course_by_code(service, "CSE101")
        due = clock.now + timedelta(days=1)

        quiz = service.create_assignment(faculty, cse.id, "Quiz", due, points=40)
        essay = service.create_assignment(faculty, cse.id, "Essay", due, points=60)
        s1 = service.submit_work(student, quiz.id, "quiz.pdf")
        clock.advance(minutes=1)
        service.submit_work(student, essay.id, "essay.pdf")
        service.grade_submission(faculty, s1.id, 30, "ok")

        t = service.transcript(student)
        self.assertEqual([r.display for r in t.rows], ["30/40", "ungraded"])
        self.assertEqual((t.earned, t.possible, t.percentage), (30, 40, 75))

        # another ungraded submission does not move the percentage
        clock.advance(minutes=1)
        service.submit_work(student, essay.id, "essay-v2.pdf")
        self.assertEqual(service.transcript(student).percentage, 75)

    def test_percentage_rounding(self) -> None:
        self.assertEqual(views.Transcript(rows=[], earned=1, possible=8).percentage, 13)
        self.assertEqual(views.Transcript(rows=[], earned=2, possible=3).percentage, 67)
        self.assertEqual(views.Transcript(rows=[], earned=0, possible=0).percentage, 0)

    def test_students_only(self) -> None:
        service, _ = make_service()
        _, faculty, _ = seeded_users(service)
        with self.assertRaises(InsufficientRole):
            service.transcript(faculty)


class TestTimetable(unittest.TestCase):
    def test_grid_buckets_by_day(self) -> None:
        service, _ = make_service()
        student, faculty, _ = seeded_users(service)
        cse = course_by_code(service, "CSE101")
        service.add_timetable_slot(faculty, cse.id, 0, "08:00", "08:50", "Lab 1")

        grid = service.weekly_grid(student)
        self.assertEqual(len(grid), 7)
        self.assertEqual([(e.slot.start, e.course_code) for e in grid[0]], [("08:00", "CSE101"), ("09:00", "CSE101")])
        self.assertEqual(grid[1], [])  # MAT110 Tuesday is not Alice's
        self.assertEqual(len(grid[2]), 1)

        staff_grid = service.weekly_grid(faculty)
        self.assertEqual([e.course_code for e in staff_grid[1]], ["MAT110"])


class TestThreads(unittest.TestCase):
    def test_grouping_titles_and_order(self) -> None:
        service, clock = make_service()
        student, faculty, admin = seeded_users(service)
        cse = course_by_code(service, "CSE101")
        mat = course_by_code(service, "MAT110")

        t1 = service.post_message_thread(faculty, cse.id, "HW1 question", "Loops?")
        clock.advance(minutes=1)
        t2 = service.post_message_thread(faculty, cse.id, "Room change", "We move to A-105")
        clock.advance(minutes=1)
        service.reply_to_thread(admin, t1.thread_id, "Use a for loop.")
        service.post_message_thread(faculty, mat.id, "Calculus only", "hidden from Alice")

        threads = service.threads(student)
        self.assertEqual([t.thread_id for t in threads], [t1.thread_id, t2.thread_id])
        self.assertEqual(threads[0].title, "HW1 question")
        self.assertEqual([m.body for m in threads[0].messages], ["Loops?", "Use a for loop."])
        self.assertEqual(threads[0].course_code, "CSE101")


class TestCatalogAndAdmin(unittest.TestCase):
    def test_catalog_seats(self) -> None:
        service, _ = make_service()
        student = seeded_users(service)[0]
        by_code = {e.course.code: e for e in service.course_catalog(student)}
        self.assertEqual(by_code["CSE101"].remaining, 59)
        self.assertTrue(by_code["CSE101"].enrolled)
        self.assertFalse(by_code["MAT110"].enrolled)
        self.assertEqual(by_code["MAT110"].faculty_name, "Dr. Barun")

    def test_dangling_owner_renders_unknown(self) -> None:
        store = MemoryStore()
        make_service(store=store)
        store.snapshot["courses"][0]["facultyId"] = "u_deleted"
        service, _ = make_service(store=store)
        student = seeded_users(service)[0]
        names = {e.course.code: e.faculty_name for e in service.course_catalog(student)}
        self.assertEqual(names["CSE101"], "unknown")

    def test_submission_list_for_owner(self) -> None:
        service, _ = make_service()
        student, faculty, _ = seeded_users(service)
        hw1 = next(iter(service.dataset.assignments.values()))
        sub = service.submit_work(student, hw1.id, "hw1.pdf", "see attached")
        service.grade_submission(faculty, sub.id, 90)

        rows = service.assignment_submissions(faculty, hw1.id)
        self.assertEqual([(r.author_name, r.grade.score) for r in rows], [("Alice Ahmed", 90)])
        with self.assertRaises(InsufficientRole):
            service.assignment_submissions(student, hw1.id)

    def test_user_directory_admin_only(self) -> None:
        service, _ = make_service()
        student, _, admin = seeded_users(service)
        self.assertEqual(len(service.user_directory(admin)), 3)
        with self.assertRaises(InsufficientRole):
            service.user_directory(student)

    def test_agenda(self) -> None:
        service, _ = make_service()
        student = seeded_users(service)[0]
        entries = service.agenda(student)
        self.assertEqual(
            [e.title for e in entries],
            ["Semester Starts", "CSE101 HW1: Variables & Loops due", "Add/Drop Deadline"],
        )


if __name__ == "__main__":
    unittest.main()
