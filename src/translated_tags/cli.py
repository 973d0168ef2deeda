import argparse
import json
import logging
from pathlib import Path

from translated_tags.core_api import (
    check_attribute,
    get_filter_options,
    get_item_data,
    get_tag_counts,
    item_data_frame,
    load_attribute,
    search_items,
)
from translated_tags.db import runtime
from translated_tags.db.column_sources import column_source_for, list_source_tables
from translated_tags.models import (
    FilterOptionsRequest,
    ItemDataRequest,
    ItemSearchRequest,
    LanguageContext,
)
from translated_tags.services.translated_tags import TranslatedTags


def _dump(obj: object) -> None:
    if hasattr(obj, "model_dump"):
        payload = obj.model_dump()
    elif isinstance(obj, list):
        payload = [item.model_dump() if hasattr(item, "model_dump") else item for item in obj]
    else:
        payload = obj

    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _init_db(args: argparse.Namespace) -> None:
    if args.db:
        runtime.set_database_path(Path(args.db))
    runtime.init_engine()


def _load(args: argparse.Namespace) -> TranslatedTags:
    _init_db(args)
    languages = LanguageContext(
        active_language=args.language,
        fallback_language=args.fallback or args.language,
    )
    return load_attribute(args.attribute, languages)


def cmd_check(args: argparse.Namespace) -> None:
    _dump(check_attribute(_load(args)))


def cmd_options(args: argparse.Namespace) -> None:
    attribute = _load(args)
    request = FilterOptionsRequest(
        item_ids=args.item or None,
        used_only=args.used_only,
        with_counts=args.counts,
    )
    _dump(get_filter_options(attribute, request))


def cmd_data(args: argparse.Namespace) -> None:
    attribute = _load(args)
    result = get_item_data(attribute, ItemDataRequest(item_ids=args.item, language=args.only))
    if args.table:
        print(item_data_frame(attribute, result))
    else:
        _dump(result)


def cmd_count(args: argparse.Namespace) -> None:
    _dump(get_tag_counts(_load(args), args.item))


def cmd_search(args: argparse.Namespace) -> None:
    attribute = _load(args)
    languages = None
    if args.all_languages:
        languages = []
    elif args.search_language:
        languages = args.search_language
    _dump(search_items(attribute, ItemSearchRequest(pattern=args.pattern, languages=languages)))


def cmd_alias(args: argparse.Namespace) -> None:
    attribute = _load(args)
    if args.reverse:
        _dump({"alias": args.value, "id": attribute.id_for_alias(args.value)})
    else:
        _dump({"id": args.value, "alias": attribute.alias_for_id(args.value)})


def cmd_columns(args: argparse.Namespace) -> None:
    _init_db(args)
    if args.table:
        _dump(column_source_for(args.table).columns())
    else:
        _dump(list_source_tables())


def _add_attribute_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--attribute", type=int, required=True, help="Attribute id.")
    parser.add_argument("--language", required=True, help="Active language.")
    parser.add_argument("--fallback", help="Fallback language (defaults to --language).")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="translated-tags")
    parser.add_argument(
        "--db",
        help=f"SQLite database path. Falls back to ${runtime.DATABASE_ENV_VAR}.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    check_parser = subparsers.add_parser("check", help="Check the attribute configuration.")
    _add_attribute_args(check_parser)
    check_parser.set_defaults(func=cmd_check)

    options_parser = subparsers.add_parser("options", help="List filter options.")
    _add_attribute_args(options_parser)
    options_parser.add_argument("--item", type=int, action="append", help="Repeat for multiple items.")
    options_parser.add_argument("--used-only", action="store_true")
    options_parser.add_argument("--counts", action="store_true", help="Include relation counts.")
    options_parser.set_defaults(func=cmd_options)

    data_parser = subparsers.add_parser("data", help="Resolve the tags of items.")
    _add_attribute_args(data_parser)
    data_parser.add_argument("--item", type=int, action="append", required=True)
    data_parser.add_argument("--only", metavar="LANGUAGE", help="Resolve one language, no fallback.")
    data_parser.add_argument("--table", action="store_true", help="Print a table instead of JSON.")
    data_parser.set_defaults(func=cmd_data)

    count_parser = subparsers.add_parser("count", help="Count the tags of items.")
    _add_attribute_args(count_parser)
    count_parser.add_argument("--item", type=int, action="append", required=True)
    count_parser.set_defaults(func=cmd_count)

    search_parser = subparsers.add_parser("search", help="Search items by tag value.")
    _add_attribute_args(search_parser)
    search_parser.add_argument("--pattern", required=True, help="'*' and '?' are wildcards.")
    search_parser.add_argument("--search-language", action="append")
    search_parser.add_argument("--all-languages", action="store_true")
    search_parser.set_defaults(func=cmd_search)

    alias_parser = subparsers.add_parser("alias", help="Convert between tag id and alias.")
    _add_attribute_args(alias_parser)
    alias_parser.add_argument("--value", required=True)
    alias_parser.add_argument("--reverse", action="store_true", help="Convert alias to id.")
    alias_parser.set_defaults(func=cmd_alias)

    columns_parser = subparsers.add_parser("columns", help="List source tables or their columns.")
    columns_parser.add_argument("--table")
    columns_parser.set_defaults(func=cmd_columns)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args.func(args)
