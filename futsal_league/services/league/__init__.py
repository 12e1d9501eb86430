"""
League statistics engine.

- events: immutable match event records
- results: pure delta arithmetic shared by apply, revert and rebuild
- match_result_applier: apply/revert a completed match exactly once
- stats_service: rebuild cached counters from source and report drift
- standings: pure ranking with the tie-break cascade
- standings_service: consistent season snapshot + ranking
- match_lifecycle: live control, edit, reset, postpone, cancel
- fair_play_service: disciplinary records and appeals
"""
