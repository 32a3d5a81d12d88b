"""Tests for non-interactive flag injection."""

from aibuddy_exec.non_interactive import (
    NON_INTERACTIVE_FLAGS,
    add_non_interactive_flag,
    inject_non_interactive_flags,
)


class TestFlagTable:

    def test_known_flags(self):
        assert NON_INTERACTIVE_FLAGS["composer"] == "--no-interaction"
        assert NON_INTERACTIVE_FLAGS["npm"] == "--yes"
        assert NON_INTERACTIVE_FLAGS["yarn"] == "--non-interactive"

    def test_empty_flag_tool_left_alone(self):
        command = 'ssh-keygen -t ed25519 -f ~/.ssh/id_ed25519 -N ""'
        assert add_non_interactive_flag(command) == command


class TestAddFlag:
    """The leading tool decides the flag; the flag is added once."""

    def test_composer(self):
        assert add_non_interactive_flag("composer install") == "composer install --no-interaction"

    def test_idempotent(self):
        once = add_non_interactive_flag("composer install")
        twice = add_non_interactive_flag(once)
        assert twice == "composer install --no-interaction"
        assert twice.count("--no-interaction") == 1

    def test_npm(self):
        assert add_non_interactive_flag("npm install") == "npm install --yes"

    def test_php_artisan(self):
        assert add_non_interactive_flag("php artisan migrate") == "php artisan migrate --no-interaction"

    def test_path_stripped_tool(self):
        assert add_non_interactive_flag("./vendor/bin/phpunit") == "./vendor/bin/phpunit --no-interaction"
        assert add_non_interactive_flag("/usr/local/bin/composer update") == (
            "/usr/local/bin/composer update --no-interaction"
        )

    def test_env_prefix(self):
        assert add_non_interactive_flag("CI=1 npm install") == "CI=1 npm install --yes"

    def test_flag_goes_before_operators(self):
        assert add_non_interactive_flag("npm install > install.log") == "npm install --yes > install.log"
        assert add_non_interactive_flag("npm test && npm run build") == "npm test --yes && npm run build"

    def test_already_flagged(self):
        assert add_non_interactive_flag("yarn install --non-interactive") == "yarn install --non-interactive"

    def test_similar_name_not_matched(self):
        assert add_non_interactive_flag("npm-check -u") == "npm-check -u"
        assert add_non_interactive_flag("pnpm install") == "pnpm install"

    def test_unknown_tool(self):
        assert add_non_interactive_flag("ls -la") == "ls -la"

    def test_operator_inside_quotes_ignored(self):
        assert add_non_interactive_flag('npm pkg set scripts.test="jest && echo ok"') == (
            'npm pkg set scripts.test="jest && echo ok" --yes'
        )
        assert add_non_interactive_flag("npm run lint -- --format 'a|b' && ls") == (
            "npm run lint -- --format 'a|b' --yes && ls"
        )

    def test_escaped_operator_ignored(self):
        assert add_non_interactive_flag("npm exec foo \\; bar") == "npm exec foo \\; bar --yes"


class TestMultiline:

    def test_continuation_flag_on_last_line(self):
        command = "npx create-next-app@latest my-app \\\n--typescript"
        assert add_non_interactive_flag(command) == "npx create-next-app@latest my-app \\\n--typescript --yes"

    def test_continuation_operator_on_later_line(self):
        command = "npm install \\\nexpress && npm test"
        assert add_non_interactive_flag(command) == "npm install \\\nexpress --yes && npm test"

    def test_heredoc_untouched(self):
        command = "npm exec -- node <<'EOF'\nconsole.log(1)\nEOF"
        assert add_non_interactive_flag(command) == command

    def test_dangling_backslash_untouched(self):
        assert add_non_interactive_flag("npm install \\") == "npm install \\"


class TestInjectList:

    def test_order_and_length_preserved(self):
        commands = ["mkdir foo", "cd foo", "npm install"]
        assert inject_non_interactive_flags(commands) == ["mkdir foo", "cd foo", "npm install --yes"]

    def test_reapplying_is_noop(self):
        once = inject_non_interactive_flags(["composer install", "npx prisma migrate dev"])
        assert inject_non_interactive_flags(once) == once
