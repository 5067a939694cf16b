# python
"""
Shell module integration tests (registration through execution and output).

Scope
- Validate end-to-end execution: overwritten commands, aliases, deep commands,
  switches, optional/required/variadic arguments, ordering of many executions.
- Validate routing feedback: help on missing arguments, unknown and partial commands,
  and strict mode rejections.
- Validate the repl mode and nested executions.
- Validate the interactive loop: show(), answered lines, exit and end-of-file.

Conventions
- Test method names follow CamelCase per project convention.
- Output is collected through a pipe() transform that suppresses printing.
- The session runs on an in-memory line editor (see fakes.py).
"""

from __future__ import annotations

import asyncio
import unittest
from unittest import IsolatedAsyncioTestCase, TestCase

from fakes import FakeEditor, capture, settle
from helmsman import Session, Shell, invoke
from helmsman.faults import ActionError, MissingArgumentError, UnknownCommandError


def commands(shell, /):
    """
    A small command set shared by the integration tests.
    """
    shell.command("fail me <arg>").action(
        lambda args, sink: sink(None, "") if args.arg == "not" else sink("failed", None)
    )

    def fuzzy(args):
        shell.log("wuzzy")

    shell.command("fuzzy", "Does something fuzzy.").action(fuzzy)

    async def foo(args, sink):
        await asyncio.sleep(0)
        shell.log("bar")
        sink()

    shell.command("foo").action(foo)

    shell.command("optional [str]").action(lambda args: shell.log(args.str or ""))

    def required(args):
        shell.log(args.arg)
        return args

    shell.command("required <arg>").action(required)
    shell.command("variadic <pizza> [ingredients...]").action(lambda args: args)
    shell.command("variadic-pizza [ingredients...]").action(lambda args: args)
    shell.command("cmd [with] [one] [million] [arguments] [in] [it]").action(lambda args: args)

    shell.command("i want").option("--no-cheese").action(lambda args: shell.log(str(args.options["cheese"]).lower()))

    shell.command("deep command [arg]").action(lambda args: shell.log(args.arg))
    shell.command("very deep command [arg]").action(lambda args: shell.log(args.arg))

    def complicated(args):
        options = args.options
        flags = "".join(letter for letter in "radt" if options.get(letter) is True)
        shell.log(flags + (options.get("i") or "") + (args.arg or ""))

    shell.command("very complicated deep command [arg]") \
        .option("-r", "Test") \
        .option("-a", "Test") \
        .option("-d", "Test") \
        .option("-s <time>", "Test") \
        .option("-t", "Test") \
        .option("-i [param]", "Test") \
        .action(complicated)

    async def count(args):
        await asyncio.sleep(0.001 * (int(args.number) % 3))
        shell.log(args.number)

    shell.command("count <number>").action(count)


class Recorder:

    def __init__(self):
        self.entries = []

    def __call__(self, args):
        self.entries.append("".join(map(str, args)))
        return ""

    def take(self):
        text, self.entries = "".join(self.entries), []
        return text


class TestShellConstruction(TestCase):
    """Behavioral tests for Shell construction and registration helpers."""

    def testRejectsBadArguments(self):
        with self.assertRaises(TypeError):
            Shell(42)
        with self.assertRaises(TypeError):
            Shell(session="not a session")

    def testBuiltins(self):
        shell = Shell(session=Session(FakeEditor()))
        self.assertIsNotNone(shell.find("help"))
        self.assertIsNotNone(shell.find("exit"))
        self.assertEqual(shell.find("repl").delimiter, "repl:")

    def testAliasRequiresACommand(self):
        shell = Shell(session=Session(FakeEditor()))
        command = shell.command("status")
        shell.alias("st")
        self.assertEqual(command.aliases, ("st",))

    def testUseAppliesExtension(self):
        shell = Shell(session=Session(FakeEditor()))
        seen = []
        shell.use(lambda target, **options: seen.append((target, options)), verbose=True)
        self.assertEqual(seen, [(shell, {"verbose": True})])
        with self.assertRaises(TypeError):
            shell.use("not callable")

    def testInvoke(self):
        shell = Shell(session=Session(FakeEditor()))
        shell.command("answer").action(lambda args: 42)
        self.assertEqual(invoke(shell, "answer"), 42)
        with self.assertRaises(TypeError):
            invoke("shell", "answer")


class TestShellExecution(IsolatedAsyncioTestCase):
    """Integration tests for Shell.exec."""

    def setUp(self):
        self.recorder = Recorder()
        self.shell = Shell(session=Session(FakeEditor()))
        self.shell.pipe(self.recorder).use(commands)

    async def testOverwriteDuplicateCommands(self):
        for item in ("a", "b", "c"):
            self.shell.command("overwritten", "This command gets overwritten.").action(
                lambda args, sink, item=item: sink(None, item)
            )
            self.shell.command("overwrite me").action(lambda args, sink, item=item: sink(None, item))
        self.assertEqual(await self.shell.exec("overwritten"), "c")
        self.assertEqual(await self.shell.exec("overwrite me"), "c")

    async def testAliases(self):
        names = ("donald trump", "sinterclaus", "linus torvalds", "nan nan nan nan nan nan nan watman!")
        command = self.shell.command("i go by other names", "This command has many aliases.")
        for name in names:
            command.alias(name)
        command.action(lambda args, sink: sink(None, "You have found me."))
        for name in names:
            self.assertEqual(await self.shell.exec(name), "You have found me.")

    async def testCallbackStyle(self):
        received = asyncio.get_running_loop().create_future()
        self.shell.exec("fuzzy", lambda error, result: received.set_result((error, result)))
        self.assertEqual(await received, (None, None))
        self.assertEqual(self.recorder.take(), "wuzzy")

    async def testFailures(self):
        await self.shell.exec("fail me not")
        with self.assertRaises(ActionError):
            await self.shell.exec("fail me yes")

    async def testSimpleCommand(self):
        await self.shell.exec("fuzzy")
        self.assertEqual(self.recorder.take(), "wuzzy")

    async def testHelp(self):
        await self.shell.exec("help")
        self.assertIn("help", self.recorder.take().lower())

    async def testHelpForOneCommand(self):
        await self.shell.exec("help very complicated deep command")
        output = self.recorder.take()
        self.assertIn("Usage: very complicated deep command [arg] [options]", output)
        self.assertIn("-s <time>", output)

    async def testChainedAsyncCommands(self):
        await self.shell.exec("foo")
        self.assertEqual(self.recorder.take(), "bar")
        await self.shell.exec("fuzzy")
        self.assertEqual(self.recorder.take(), "wuzzy")

    async def testDeepCommands(self):
        await self.shell.exec("deep command arg")
        self.assertEqual(self.recorder.take(), "arg")
        await self.shell.exec("very deep command arg")
        self.assertEqual(self.recorder.take(), "arg")

    async def testLongCommandWithArguments(self):
        await self.shell.exec("very complicated deep command abc123 -rad -sleep 'well' -t -i 'j' ")
        self.assertEqual(self.recorder.take(), "radtjabc123")

    async def testManyCommandsRunInOrder(self):
        executions = [self.shell.exec(f"count {number}") for number in range(1, 50)]
        await asyncio.gather(*executions)
        self.assertEqual(self.recorder.entries, [str(number) for number in range(1, 50)])

    async def testOptionalArgument(self):
        await self.shell.exec("optional")
        self.assertEqual(self.recorder.take(), "")

    async def testNegatedSwitch(self):
        await self.shell.exec("i want --no-cheese")
        self.assertEqual(self.recorder.take(), "false")

    async def testExtraTokensAreIgnored(self):
        args = await self.shell.exec("required something with extra something")
        self.assertEqual(args.arg, "something")

    async def testVariadic(self):
        args = await self.shell.exec("variadic pepperoni olives pineapple anchovies")
        self.assertEqual(args.pizza, "pepperoni")
        self.assertEqual(args.ingredients, ("olives", "pineapple", "anchovies"))

    async def testVariadicAsFirstArgument(self):
        args = await self.shell.exec("variadic-pizza olives pineapple anchovies")
        self.assertEqual(args.ingredients, ("olives", "pineapple", "anchovies"))

    async def testManyArguments(self):
        args = await self.shell.exec("cmd that has a ton of arguments")
        self.assertEqual(
            (args["with"], args["one"], args["million"], args["arguments"], args["in"], args["it"]),
            ("that", "has", "a", "ton", "of", "arguments"),
        )

    async def testMissingRequiredArgumentShowsHelp(self):
        self.assertIsNone(await self.shell.exec("required"))
        output = self.recorder.take()
        self.assertIn("Missing required argument. Showing Help:", output)
        self.assertIn("Usage: required <arg>", output)

    async def testRequiredArgument(self):
        await self.shell.exec("required foobar")
        self.assertEqual(self.recorder.take(), "foobar")

    async def testInvalidCommandShowsHelp(self):
        self.assertIsNone(await self.shell.exec("gooblediguck"))
        self.assertIn("Invalid Command. Showing Help:", self.recorder.take())

    async def testPartialCommandShowsSubcommands(self):
        await self.shell.exec("very complicated")
        self.assertIn("very complicated deep *", self.recorder.take())

    async def testBlankLine(self):
        self.assertIsNone(await self.shell.exec("   "))
        self.assertEqual(self.recorder.take(), "")

    async def testNestedExecution(self):
        async def twice(args):
            first = await self.shell.exec("required one")
            second = await self.shell.exec("required two")
            return first.arg + second.arg

        self.shell.command("twice").action(twice)
        self.assertEqual(await asyncio.wait_for(self.shell.exec("twice"), 1), "onetwo")


class TestStrictShell(IsolatedAsyncioTestCase):
    """Integration tests for strict routing."""

    def setUp(self):
        self.recorder = Recorder()
        self.shell = Shell(session=Session(FakeEditor()), strict=True)
        self.shell.pipe(self.recorder).use(commands)

    async def testUnknownCommandRejects(self):
        with self.assertRaises(UnknownCommandError):
            await self.shell.exec("gooblediguck")
        self.assertEqual(self.recorder.take(), "")

    async def testMissingArgumentRejects(self):
        with self.assertRaises(MissingArgumentError) as context:
            await self.shell.exec("required")
        self.assertEqual(context.exception.command, "required")


class TestReplMode(IsolatedAsyncioTestCase):
    """Integration tests for the repl mode."""

    def setUp(self):
        self.recorder = Recorder()
        self.shell = Shell(session=Session(FakeEditor()))
        self.shell.pipe(self.recorder)

    async def testReplRoundTrip(self):
        await self.shell.exec("repl")
        self.assertIn("Entering REPL Mode", self.recorder.take())
        self.assertIs(self.shell.active_mode, self.shell.find("repl"))

        self.assertEqual(await self.shell.exec("3*9"), 27)
        self.assertEqual(self.recorder.take(), "27")

        self.assertIsNone(await self.shell.exec("value = 6"))
        self.assertEqual(await self.shell.exec("value * 7"), 42)
        self.assertEqual(self.shell.namespace["value"], 6)
        self.recorder.take()

        await self.shell.exec("exit")
        self.assertIsNone(self.shell.active_mode)
        await self.shell.exec("help")
        self.assertIn("exit", self.recorder.take())

    async def testSystemExitLeavesMode(self):
        for line in ("exit()", "raise SystemExit(3)"):
            await self.shell.exec("repl")
            self.assertIsNone(await self.shell.exec(line))
            self.assertIsNone(self.shell.active_mode)
        self.assertEqual(await self.shell.exec("help"), None)
        self.assertIn("exit", self.recorder.take())

    async def testReplErrorsAreWrapped(self):
        await self.shell.exec("repl")
        with self.assertRaises(ActionError) as context:
            await self.shell.exec("1/0")
        self.assertIsInstance(context.exception.error, ZeroDivisionError)
        self.assertIs(self.shell.active_mode, self.shell.find("repl"))


class TestInteractiveLoop(IsolatedAsyncioTestCase):
    """Integration tests for show(), hide() and the prompt cycle."""

    def setUp(self):
        self.editor = FakeEditor()
        self.pipeline, self.buffer = capture()
        self.session = Session(self.editor, self.pipeline)
        self.shell = Shell(delimiter="local$", session=self.session)
        self.seen = []
        self.shell.command("say <word>").action(lambda args: self.seen.append(args.word))

    async def testAnsweredLinesAreExecuted(self):
        shown = asyncio.ensure_future(self.shell.show())
        await settle()
        self.assertIs(self.session.owner, self.shell)
        self.assertEqual(self.editor.reads, ["local$ "])

        self.editor.answer("say hello")
        await settle()
        self.assertEqual(self.seen, ["hello"])
        self.assertEqual(self.editor.reads, ["local$ ", "local$ "])

        self.editor.answer("exit")
        await asyncio.wait_for(shown, 1)
        self.assertIsNone(self.session.owner)

    async def testModeDelimiter(self):
        shown = asyncio.ensure_future(self.shell.show())
        await settle()
        self.editor.answer("repl")
        await settle()
        self.assertEqual(self.editor.reads[-1], "local$ repl: ")
        self.editor.answer("exit")
        await settle()
        self.assertEqual(self.editor.reads[-1], "local$ ")
        self.shell.hide()
        await asyncio.wait_for(shown, 1)

    async def testEndOfFileHides(self):
        shown = asyncio.ensure_future(self.shell.show())
        await settle()
        self.editor.fail(EOFError())
        await asyncio.wait_for(shown, 1)
        self.assertIsNone(self.session.owner)

    async def testFaultsAreEchoedAndLoopContinues(self):
        shown = asyncio.ensure_future(self.shell.show())
        await settle()
        self.editor.answer("say")
        await settle()
        self.assertIn("Missing required argument. Showing Help:", self.buffer.getvalue())
        self.assertEqual(len(self.editor.reads), 2)
        self.shell.hide()
        await asyncio.wait_for(shown, 1)

    async def testDelimiterChangeRefreshesPrompt(self):
        shown = asyncio.ensure_future(self.shell.show())
        await settle()
        self.shell.delimiter("remote$")
        await settle()
        self.assertEqual(self.editor.reads[-1], "remote$ ")
        self.shell.hide()
        await asyncio.wait_for(shown, 1)


if __name__ == "__main__":
    unittest.main()
