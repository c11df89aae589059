# Preview a bracket from an entries file without touching the store

import argparse
import uuid

import yaml

from bracket.double_elimination import generate_double_elimination_bracket
from bracket.elimination import (
    calculate_bracket_size,
    calculate_byes,
    generate_single_elimination_bracket,
    seed_entries,
)
from bracket.errors import NotEnoughEntriesError
from bracket.models import BracketSide


def load_entries(file_path):
    """Entries file is a YAML list of names or of {name, embed_link} mappings."""
    with open(file_path, mode='r', encoding='utf-8') as file:
        data = yaml.safe_load(file) or []
    rows = []
    for item in data:
        if isinstance(item, str):
            rows.append({'name': item})
        else:
            rows.append(item)
    return rows


def describe_slot(entry_id, names):
    if entry_id is None:
        return '-'
    return names.get(entry_id, entry_id)


def print_bracket(graph, entries):
    names = {e.id: f"({e.seed}) {e.name}" for e in entries}
    for side in BracketSide:
        rounds = graph.rounds(side)
        if not rounds:
            continue
        print(f"\n=== {side.value.title()} ===")
        for round_number in rounds:
            print(f"Round {round_number}")
            for match in graph.round(side, round_number):
                marker = ' [bye]' if match.is_bye else ''
                winner_id = match.winner_entry_id()
                if winner_id is not None:
                    marker += f" -> {describe_slot(winner_id, names)}"
                print(f"  M{match.match_order}: {describe_slot(match.entry_1_id, names)} vs "
                      f"{describe_slot(match.entry_2_id, names)} - {match.status.value}{marker}")


def main():
    parser = argparse.ArgumentParser(description='Preview an elimination bracket')
    parser.add_argument('entries_file', help='YAML list of entries in seed order')
    parser.add_argument('--type', choices=['single', 'double'], default='single',
                        help='Bracket type (default: single)')
    args = parser.parse_args()

    tournament_id = str(uuid.uuid4())
    entries = seed_entries(tournament_id, load_entries(args.entries_file))

    if not entries:
        print("No entries loaded. Check the entries file")
        return 1

    try:
        if args.type == 'double':
            graph = generate_double_elimination_bracket(tournament_id, entries)
        else:
            graph = generate_single_elimination_bracket(tournament_id, entries)
    except NotEnoughEntriesError as e:
        print(e.message)
        return 1

    print(f"{len(entries)} entries, {len(graph)} matches")
    print(f"Bracket of {calculate_bracket_size(len(entries))} with {calculate_byes(len(entries))} byes")
    print_bracket(graph, entries)
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
