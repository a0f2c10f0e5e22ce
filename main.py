import logging

from maidcli import *

__prog__ = "maid"
__docs__ = {
    FaultCode.MISSING_REQUIRED_OPTION: "every deploy needs a target environment",
}


def deploy(args):
    if "force" not in args.flags:
        print("dry run: would deploy", ", ".join(args) or "everything", "to", args.options["env"])
        return True
    print("deploying", ", ".join(args) or "everything", "to", args.options["env"])
    return True


class Status:
    def __command__(self):
        return Command(
            "status",
            "s",
            "show what is deployed where",
            handler=lambda args: print("all green") or True,
        )


cli = (
    CLIBuilder.create()
    .map_command(lambda command: (
        command
        .with_name("deploy")
        .with_short_name("d")
        .with_description("ship the current build")
        .with_usage("deploy --env=<name> [--force] [TARGET ...]")
        .with_option("env", "e", "target environment", required=True)
        .with_option("region", "r", "override the default region")
        .with_flag("force", "f", "really deploy instead of a dry run")
        .execute_with(deploy)
    ))
    .map_command(Status())
    .map_command("ping", "p", lambda args: print("pong") or True)
    .build()
)


if __name__ == '__main__':
    logging.basicConfig(level=logging.WARNING)
    raise SystemExit(shell.run(cli, fancy=True))
