# python
"""
Session module behavioral tests (prompt coordinator state machine).

Scope
- Validate prompting: answers, reentrancy, delimiter handling.
- Validate pause/resume: typed text and cursor survive, the line is redrawn.
- Validate log interleaving: the live line is paused, written above, resumed.
- Validate ownership: attach/detach/refresh rules.
- Validate editor failures and keypress events.

Conventions
- Test method names follow CamelCase per project convention.
- The line editor is an in-memory double (see fakes.py).
"""

from __future__ import annotations

import unittest
import warnings
from unittest import IsolatedAsyncioTestCase, TestCase

from fakes import FakeEditor, FakeOwner, capture, settle
from helmsman import LineEditor, Session
from helmsman.faults import PromptReentrancyError, SessionOwnershipError


class TestSessionConstruction(TestCase):
    """Behavioral tests for Session construction."""

    def testFakeEditorIsALineEditor(self):
        self.assertIsInstance(FakeEditor(), LineEditor)

    def testEditorMustImplementProtocol(self):
        with self.assertRaises(TypeError):
            Session(object())

    def testDelimiterIsNormalized(self):
        session = Session(FakeEditor())
        session.set_delimiter("  helmsman$   ")
        self.assertEqual(session.delimiter, "helmsman$ ")


class TestSessionPrompt(IsolatedAsyncioTestCase):
    """Behavioral tests for Session prompting, pausing and logging."""

    def setUp(self):
        self.editor = FakeEditor()
        self.pipeline, self.buffer = capture()
        self.session = Session(self.editor, self.pipeline)
        self.session.set_delimiter("local$")

    async def testPromptAnswers(self):
        future = self.session.prompt()
        await settle()
        self.assertTrue(self.session.midprompt)
        self.assertEqual(self.editor.reads, ["local$ "])
        self.editor.answer("hello")
        self.assertEqual(await future, "hello")
        self.assertFalse(self.session.midprompt)

    async def testMessageAppliesToOneRead(self):
        future = self.session.prompt("Continue?")
        await settle()
        self.editor.answer("y")
        await future
        self.assertEqual(self.editor.reads, ["Continue? "])
        self.assertEqual(self.session.delimiter, "local$ ")

    async def testReentrancyRejected(self):
        future = self.session.prompt()
        with self.assertRaises(PromptReentrancyError):
            self.session.prompt()
        await settle()
        self.editor.answer("x")
        await future

    async def testPauseAndResumePreserveText(self):
        future = self.session.prompt()
        await settle()
        self.editor.line = "half typed"
        self.assertEqual(self.session.pause(), "half typed")
        self.assertTrue(self.session.paused)
        self.assertEqual(self.editor.calls, ["clean"])
        self.assertTrue(self.session.resume("half typed"))
        self.assertEqual(self.editor.line, "half typed")
        self.assertEqual(self.editor.cursor, len("half typed"))
        self.assertEqual(self.editor.calls, ["clean", "render"])
        self.editor.answer("half typed")
        await future

    async def testPauseWhenIdle(self):
        self.assertIs(self.session.pause(), False)
        self.assertIs(self.session.resume("x"), False)

    async def testLogWhilePrompting(self):
        future = self.session.prompt()
        await settle()
        self.editor.line = "draft"
        self.session.log("background output")
        self.assertEqual(self.buffer.getvalue(), "background output\n")
        self.assertEqual(self.editor.calls, ["clean", "render"])
        self.assertEqual(self.editor.line, "draft")
        self.assertFalse(self.session.paused)
        self.editor.answer("draft")
        await future

    async def testLogWhenIdleWritesDirectly(self):
        self.session.log("plain")
        self.assertEqual(self.buffer.getvalue(), "plain\n")
        self.assertEqual(self.editor.calls, [])

    async def testSuppressedLogLeavesLineAlone(self):
        self.pipeline.pipe(lambda args: "")
        future = self.session.prompt()
        await settle()
        self.session.log("hidden")
        self.assertEqual(self.buffer.getvalue(), "")
        self.assertEqual(self.editor.calls, [])
        self.editor.answer("")
        await future

    async def testImprint(self):
        future = self.session.prompt()
        await settle()
        self.editor.line = "typed"
        self.session.imprint()
        self.assertEqual(self.buffer.getvalue(), "local$ typed\n")
        self.editor.answer("typed")
        await future

    async def testEndOfFilePropagates(self):
        future = self.session.prompt()
        await settle()
        self.editor.fail(EOFError())
        with self.assertRaises(EOFError):
            await future
        self.assertFalse(self.session.midprompt)

    async def testEditorFailureIsReported(self):
        future = self.session.prompt()
        await settle()
        self.editor.fail(OSError("terminal went away"))
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            self.assertIsNone(await future)
        self.assertFalse(self.session.midprompt)
        self.assertIn("terminal went away", self.buffer.getvalue())


class TestSessionOwnership(IsolatedAsyncioTestCase):
    """Behavioral tests for attach, detach, refresh and keypress events."""

    def setUp(self):
        self.editor = FakeEditor()
        self.pipeline, self.buffer = capture()
        self.session = Session(self.editor, self.pipeline)
        self.owner = FakeOwner(self.session)

    async def testAttachPrompts(self):
        self.session.attach(self.owner)
        self.assertIs(self.session.owner, self.owner)
        self.assertEqual(self.owner.prompts, 1)
        self.assertTrue(self.session.midprompt)

    async def testSecondOwnerRejected(self):
        self.session.attach(self.owner)
        with self.assertRaises(SessionOwnershipError):
            self.session.attach(FakeOwner(self.session))

    async def testDetachOnlyMatchingOwner(self):
        self.session.attach(self.owner)
        self.session.detach(FakeOwner(self.session))
        self.assertIs(self.session.owner, self.owner)
        await settle()
        self.session.detach(self.owner)
        self.assertIsNone(self.session.owner)
        self.assertFalse(self.session.midprompt)
        self.assertIsNone(await self.owner.futures[0])

    async def testRefreshAbandonsAndReprompts(self):
        self.session.attach(self.owner)
        await settle()
        first = self.owner.futures[0]
        self.editor.line = "stale"
        self.assertTrue(self.session.refresh())
        self.assertIn("done", self.editor.calls)
        self.assertIsNone(await first)
        self.assertEqual(self.owner.prompts, 2)
        self.assertTrue(self.session.midprompt)
        await settle()
        self.editor.answer("fresh")
        self.assertEqual(await self.owner.futures[1], "fresh")

    async def testRefreshWhenIdle(self):
        self.assertFalse(self.session.refresh())

    async def testKeypressEvents(self):
        raw, keys, forwarded = [], [], []
        self.session.on("client_keypress", raw.append)
        self.session.on("keypress", keys.append)
        self.owner.on("keypress", forwarded.append)

        self.editor.press("a", "a")
        self.assertEqual(len(raw), 1)
        self.assertEqual(keys, [])

        self.session.attach(self.owner)
        await settle()
        self.editor.press("b", " b ")
        self.assertEqual(raw[-1].name, "b")
        self.assertEqual(keys, [{"key": "b", "value": "a b"}])
        self.assertEqual(forwarded, keys)


if __name__ == "__main__":
    unittest.main()
