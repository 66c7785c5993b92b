"""Score every scraped posting that has not been scored yet.

The work list is recomputed from the store on every run: scraped postings
without a processed row. Re-running the pipeline is therefore always safe;
postings that failed last time are simply picked up again.
"""
from __future__ import annotations

from gigradar.embeddings import EMBEDDING_MODEL, EmbeddingClient
from gigradar.errors import DuplicatePostingError
from gigradar.log import get_logger
from gigradar.models import ProcessedResult, ProcessResult, UserProfile
from gigradar.notifier import Notifier
from gigradar.pacing import Pacer
from gigradar.scorer import score_posting
from gigradar.similarity import cosine_similarity
from gigradar.store import Store
from gigradar.text_cleaner import clean_description, extract_skills

log = get_logger(__name__)


def process_pending(
    store: Store,
    embedder: EmbeddingClient,
    profile: UserProfile,
    *,
    notifier: Notifier | None = None,
    pacer: Pacer | None = None,
    profile_vector: list[float] | None = None,
) -> ProcessResult:
    """Run one processing pass.

    ``profile_vector`` is computed once here (or injected) and reused for
    every posting in the pass. Failing to obtain it aborts the pass.
    """
    pacer = pacer or Pacer()
    result = ProcessResult()

    if profile_vector is None:
        log.info("Embedding profile skills: %s", profile.embedding_text())
        profile_vector = embedder.embed(profile.embedding_text())

    pending = store.pending_postings()
    if not pending:
        log.info("No postings to process")
        return result
    log.info("%d postings need scoring", len(pending))

    for i, posting in enumerate(pending):
        if i:
            pacer.item_pause()
        log.info("Processing %s: %s", posting.source_id, posting.title)
        try:
            clean_text = clean_description(posting.description)
            extracted = extract_skills(clean_text)
            vector = embedder.embed(clean_text)
            similarity = cosine_similarity(vector, profile_vector)
            scores = score_posting(posting, similarity, profile)
            log.info(
                "  similarity=%.2f budget=%.0f client=%.0f skills=%.0f → relevance %.2f",
                scores.embedding_similarity,
                scores.budget_score,
                scores.client_score,
                scores.skills_score,
                scores.relevance_score,
            )

            if notifier is not None and notifier.notify(posting, scores.relevance_score):
                result.notified += 1

            store.insert_processed(
                ProcessedResult(
                    id=posting.id,
                    clean_text=clean_text,
                    extracted_skill_tags=extracted,
                    embedding_vector=vector,
                    scores=scores,
                    metadata={
                        "original_description_length": len(posting.description or ""),
                        "embedding_model": EMBEDDING_MODEL,
                    },
                )
            )
            result.processed += 1
        except DuplicatePostingError:
            log.info("  %s was scored concurrently, skipping", posting.source_id)
        except Exception as exc:
            log.error("  Failed to process %s: %s", posting.source_id, exc)
            result.failed += 1
            result.errors.append(f"{posting.source_id}: {exc}")

    log.info("Processing complete: %d processed, %d failed", result.processed, result.failed)
    return result
