"""
Registry module behavioral tests (resolution, validation, dispatch).

Scope
- Validate full-name-first resolution and the read-only mapping surface.
- Validate exhaustive validation (unknown arguments, missing required options).
- Validate dispatch terminal states, exit codes and handler isolation on rejection.
- Validate idempotence and the exception-group escape hatch (unwrap).

Conventions
- Test method names follow CamelCase per project convention.
- Handlers record their calls so "never invoked" can be asserted directly.
"""

from __future__ import annotations

import unittest
from unittest import TestCase

from maidcli import (
    Arguments,
    CLIBuilder,
    Command,
    Dispatch,
    Flag,
    Option,
    Outcome,
    Registry,
    tokenize,
)
from maidcli.faults import (
    CommandExit,
    CommandNotFoundError,
    ConflictingFlagOptionError,
    DuplicateCommandError,
    MalformedTokenError,
    MissingRequiredOptionError,
    UnknownArgumentError,
)


class Recorder:
    """Handler double: records every call and returns a fixed result."""

    def __init__(self, result=True):
        self.result = result
        self.calls = []

    def __call__(self, args):
        self.calls.append(args)
        return self.result


def registry_with(deploy, status=None):
    return (
        CLIBuilder.create()
        .map_command(lambda command: (
            command
            .with_name("deploy")
            .with_short_name("d")
            .with_description("ship the current build")
            .with_option("env", "e", required=True)
            .with_option("region", "r")
            .with_flag("force", "f")
            .execute_with(deploy)
        ))
        .map_command("status", "s", status or Recorder())
        .build()
    )


class TestResolution(TestCase):
    """Registry lookups and the read-only mapping surface."""

    def setUp(self):
        self.registry = registry_with(Recorder())

    def testResolvesByFullAndShortName(self):
        self.assertEqual(self.registry.resolve("deploy").name, "deploy")
        self.assertIs(self.registry.resolve("d"), self.registry.resolve("deploy"))

    def testResolutionIsCaseSensitive(self):
        self.assertIsNone(self.registry.resolve("Deploy"))
        self.assertIsNone(self.registry.resolve("D"))

    def testUnknownTokenResolvesToNone(self):
        self.assertIsNone(self.registry.resolve("destroy"))
        self.assertIsNone(self.registry.resolve(""))

    def testMappingSurface(self):
        self.assertEqual(list(self.registry), ["deploy", "d", "status", "s"])
        self.assertEqual(len(self.registry), 4)
        self.assertIn("s", self.registry)
        self.assertNotIn("x", self.registry)
        with self.assertRaises(KeyError):
            self.registry["x"]

    def testRegistryIsReadOnly(self):
        with self.assertRaises(AttributeError):
            self.registry._commands = ()
        with self.assertRaises(TypeError):
            self.registry["x"] = Command("x", handler=print)

    def testConstructionNeverReturnsPartialRegistry(self):
        commands = [Command("a", "x", handler=print), Command("b", "x", handler=print)]
        with self.assertRaises(DuplicateCommandError) as context:
            Registry(commands)
        self.assertEqual(context.exception.options["input"], "x")

    def testConstructionRejectsNonCommands(self):
        with self.assertRaises(TypeError):
            Registry(["deploy"])
        with self.assertRaises(TypeError):
            Registry("deploy")


class TestValidation(TestCase):
    """Registry.validate: every violation in one pass."""

    def setUp(self):
        self.registry = registry_with(Recorder())
        self.deploy = self.registry["deploy"]

    def testValidInvocationHasNoFaults(self):
        self.assertEqual(self.registry.validate(self.deploy, tokenize(["deploy", "-e=prod", "--force"])), [])

    def testReportsEveryViolation(self):
        faults = self.registry.validate(self.deploy, tokenize(["deploy", "--bogus", "-x=1"]))
        self.assertEqual(
            [type(fault) for fault in faults],
            [UnknownArgumentError, UnknownArgumentError, MissingRequiredOptionError],
        )

    def testShortSpellingMatchesShortNameOnly(self):
        faults = self.registry.validate(self.deploy, tokenize(["deploy", "-env=prod"]))
        self.assertEqual([type(fault) for fault in faults], [UnknownArgumentError, MissingRequiredOptionError])

    def testFlagWithValueIsUnknownWithHint(self):
        faults = self.registry.validate(self.deploy, tokenize(["deploy", "--env=prod", "--force=yes"]))
        self.assertEqual(len(faults), 1)
        self.assertIn("takes no value", faults[0].hint)

    def testOptionWithoutValueIsUnknownWithHint(self):
        faults = self.registry.validate(self.deploy, tokenize(["deploy", "--env"]))
        self.assertEqual([type(fault) for fault in faults], [UnknownArgumentError, MissingRequiredOptionError])
        self.assertIn("takes a value", faults[0].hint)

    def testUnknownArgumentSuggestsCloseSpelling(self):
        fault, = self.registry.validate(self.deploy, tokenize(["deploy", "--env=prod", "--forse"]))
        self.assertIn("--force", fault.options["suggestions"])
        self.assertEqual(fault.options["index"], 3)

    def testMissingRequiredOptionNamesTheOption(self):
        fault, = self.registry.validate(self.deploy, tokenize(["deploy"]))
        self.assertEqual(fault.options["argument"], Option("env", "e", required=True))
        self.assertIn("'--env'", fault.message)


class TestDispatch(TestCase):
    """Registry.dispatch: terminal states and exit codes."""

    def setUp(self):
        self.deploy = Recorder()
        self.registry = registry_with(self.deploy)

    def testSuccessfulDispatch(self):
        dispatch = self.registry.dispatch(["d", "-e=prod", "-f", "web", "db"])
        self.assertIsInstance(dispatch, Dispatch)
        self.assertEqual(dispatch.outcome, Outcome.SUCCESS)
        self.assertEqual(dispatch.exitcode, 0)
        self.assertFalse(dispatch.rejected)
        self.assertEqual(dispatch.command.name, "deploy")

        args, = self.deploy.calls
        self.assertIsInstance(args, Arguments)
        self.assertEqual(args, ("web", "db"))
        self.assertEqual(args.flags, {"force"})
        self.assertEqual(dict(args.options), {"env": "prod"})
        self.assertIs(args.invocation, dispatch.invocation)

    def testCanonicalOptionsPreferLastValue(self):
        self.registry.dispatch(["deploy", "--env=a", "-e=b"])
        args, = self.deploy.calls
        self.assertEqual(dict(args.options), {"env": "b"})

    def testHandledFailure(self):
        registry = registry_with(Recorder(result=False))
        dispatch = registry.dispatch("deploy --env=prod")
        self.assertEqual(dispatch.outcome, Outcome.FAILURE)
        self.assertEqual(dispatch.exitcode, 1)

    def testNoneResultIsFailure(self):
        registry = registry_with(Recorder(result=None))
        self.assertEqual(registry.dispatch("deploy --env=prod").outcome, Outcome.FAILURE)

    def testMissingRequiredOptionNeverInvokesHandler(self):
        dispatch = self.registry.dispatch(["deploy", "--force"])
        self.assertTrue(dispatch.rejected)
        self.assertIsNone(dispatch.outcome)
        self.assertEqual(dispatch.exitcode, 64)
        self.assertIsInstance(dispatch.faults[0], MissingRequiredOptionError)
        self.assertEqual(self.deploy.calls, [])

    def testUnknownCommandNeverInvokesAnything(self):
        status = Recorder()
        registry = registry_with(self.deploy, status)
        dispatch = registry.dispatch(["deplyo", "--env=prod"])
        self.assertEqual(dispatch.outcome, Outcome.NOT_FOUND)
        self.assertEqual(dispatch.exitcode, 2)
        fault, = dispatch.faults
        self.assertIsInstance(fault, CommandNotFoundError)
        self.assertIn("deploy", fault.options["suggestions"])
        self.assertEqual(self.deploy.calls, [])
        self.assertEqual(status.calls, [])

    def testEmptyPromptIsNotFound(self):
        dispatch = self.registry.dispatch([])
        self.assertEqual(dispatch.outcome, Outcome.NOT_FOUND)
        self.assertEqual(dispatch.faults[0].message, "no command given")

    def testMalformedTokenIsReturned(self):
        dispatch = self.registry.dispatch(["deploy", "--"])
        self.assertIsNone(dispatch.invocation)
        self.assertIsInstance(dispatch.faults[0], MalformedTokenError)
        self.assertEqual(dispatch.exitcode, 65)
        self.assertEqual(self.deploy.calls, [])

    def testHandlerFaultPropagates(self):
        def broken(args):
            raise RuntimeError("boom")

        registry = registry_with(broken)
        with self.assertRaises(RuntimeError):
            registry.dispatch(["deploy", "--env=prod"])

    def testDispatchIsIdempotent(self):
        invocation = tokenize(["deploy", "--env=prod", "target"])
        first = self.registry.dispatch(invocation)
        second = self.registry.dispatch(invocation)
        self.assertEqual(first.outcome, second.outcome)
        self.assertEqual(first, second)
        self.assertEqual(len(self.deploy.calls), 2)

    def testUnwrapReturnsOutcome(self):
        self.assertEqual(self.registry.dispatch("deploy --env=prod").unwrap(), Outcome.SUCCESS)

    def testUnwrapRaisesEveryFault(self):
        dispatch = self.registry.dispatch("deploy --bogus")
        with self.assertRaises(CommandExit) as context:
            dispatch.unwrap()
        self.assertEqual(len(context.exception.exceptions), 2)
        self.assertEqual(context.exception.exitcode, 64)

    def testArgumentsDefaults(self):
        args = Arguments(("a",))
        self.assertEqual(args, ("a",))
        self.assertEqual(args.flags, frozenset())
        self.assertEqual(dict(args.options), {})
        self.assertEqual(args.invocation.positionals, ("a",))

    def testArgumentsAreReadOnly(self):
        self.registry.dispatch(["deploy", "--env=prod", "-f"])
        args, = self.deploy.calls
        for name, value in (("flags", frozenset()), ("options", {}), ("invocation", None), ("extra", 1)):
            with self.subTest(name=name):
                with self.assertRaises(AttributeError):
                    setattr(args, name, value)
        with self.assertRaises(AttributeError):
            del args.flags
        with self.assertRaises(TypeError):
            args.options["env"] = "dev"
        self.assertEqual(args.flags, {"force"})
        self.assertEqual(dict(args.options), {"env": "prod"})

    def testUnknownShortFlagIsAnUnknownArgument(self):
        calc = Recorder()
        registry = CLIBuilder.create().map_command("calc", handler=calc).build()
        dispatch = registry.dispatch(["calc", "-5"])
        fault, = dispatch.faults
        self.assertIsInstance(fault, UnknownArgumentError)
        self.assertEqual(fault.options["input"], "-5")
        self.assertEqual(dispatch.exitcode, 64)
        self.assertEqual(calc.calls, [])


class TestSchemaConflicts(TestCase):
    """Registry construction refuses switches of one command sharing a name."""

    def assertConflicts(self, **switches):
        command = Command("x", handler=print, **switches)
        with self.assertRaises(ConflictingFlagOptionError) as context:
            Registry([command])
        self.assertEqual(context.exception.exitcode, 64)
        return context.exception

    def testFlagFlagConflict(self):
        self.assertConflicts(flags=(Flag("force", "f"), Flag("fast", "f")))

    def testFlagNameEqualToOptionShortName(self):
        fault = self.assertConflicts(flags=(Flag("f"),), options=(Option("file", "f"),))
        self.assertEqual(fault.options["input"], "f")
        self.assertEqual(fault.options["conflict"], Flag("f"))
        self.assertEqual(fault.options["argument"], Option("file", "f"))

    def testFlagShortNameEqualToAnotherFlagName(self):
        self.assertConflicts(flags=(Flag("a", "b"), Flag("b", "c")))

    def testOptionShortNameEqualToAnotherOptionName(self):
        self.assertConflicts(options=(Option("env"), Option("region", "env")))

    def testOptionNameEqualToFlagName(self):
        self.assertConflicts(flags=(Flag("env"),), options=(Option("env", "e"),))

    def testSwitchMayRepeatItsOwnName(self):
        registry = Registry([Command("x", flags=(Flag("v", "v"),), handler=print)])
        self.assertEqual(registry["x"].flags, (Flag("v", "v"),))

    def testDistinctNamesAreAccepted(self):
        command = Command("x", flags=(Flag("force", "f"),), options=(Option("file", "F"),), handler=print)
        self.assertEqual(len(Registry([command])["x"].switches), 2)


if __name__ == "__main__":
    unittest.main()
