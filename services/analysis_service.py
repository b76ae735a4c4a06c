"""
AnalysisService - Runs lexical analysis over stored conversations
"""

import logging
from typing import List, Dict, Any, Optional

from repositories.analysis_repository import AnalysisRepository
from repositories.base_repository import PaginationParams
from repositories.conversation_repository import ConversationRepository
from services.common.exceptions import ConversationNotFoundError
from services.common.result import Result
from services.transcript_analyzer_service import TranscriptAnalyzerService, LexicalAnalysis

logger = logging.getLogger(__name__)


class AnalysisService:
    """Batch and single-conversation lexical analysis"""

    def __init__(self,
                 conversation_repository: ConversationRepository,
                 analysis_repository: AnalysisRepository,
                 transcript_analyzer: TranscriptAnalyzerService,
                 batch_limit: int = 500):
        self.conversation_repository = conversation_repository
        self.analysis_repository = analysis_repository
        self.transcript_analyzer = transcript_analyzer
        self.batch_limit = batch_limit

    def analyze_conversation(self, conversation_id: str) -> LexicalAnalysis:
        """
        Analyze one conversation and overwrite its stored analysis.

        Raises:
            ConversationNotFoundError: Unknown conversation
        """
        conversation = self.conversation_repository.get_by_conversation_id(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)

        analysis = self.transcript_analyzer.analyze(conversation.transcript_details)
        self.analysis_repository.upsert_lexical_analysis(conversation_id, analysis.to_fields())
        self.conversation_repository.update_message_count(conversation, analysis.message_count)
        self.analysis_repository.commit()
        return analysis

    def run_analysis(self,
                     conversation_ids: Optional[List[str]] = None,
                     limit: Optional[int] = None) -> Result[Dict[str, Any]]:
        """
        Analyze conversations one after another.

        Without explicit ids, conversations that have never been analysed are
        selected, up to ``limit``. A failing conversation is recorded in
        ``errors`` and the run continues.

        Returns:
            Result with analyzed, total and errors
        """
        limit = limit or self.batch_limit
        if conversation_ids:
            targets = list(conversation_ids)
        else:
            targets = [
                conversation.conversation_id
                for conversation in self.conversation_repository.list_conversations(
                    unanalyzed_only=True, limit=limit
                )
            ]

        if not targets:
            return Result.success(
                {'analyzed': 0, 'total': 0, 'errors': []},
                metadata={'message': 'No conversations to analyze'}
            )

        analyzed = 0
        errors = []
        for conversation_id in targets:
            try:
                self.analyze_conversation(conversation_id)
                analyzed += 1
            except Exception as e:
                logger.error(f"Error analyzing conversation {conversation_id}: {e}")
                self.analysis_repository.rollback()
                errors.append({'conversation_id': conversation_id, 'error': str(e)})

        logger.info(f"Analyzed {analyzed}/{len(targets)} conversations")
        return Result.success(
            {'analyzed': analyzed, 'total': len(targets), 'errors': errors},
            metadata={'failed': len(errors)}
        )

    def get_results(self, page: int = 1, per_page: int = 50,
                    sentiment_category: Optional[str] = None,
                    account_id: Optional[int] = None) -> Dict[str, Any]:
        """Paginated analysis results, newest first"""
        page_result = self.analysis_repository.get_results_page(
            PaginationParams(page=page, per_page=per_page),
            sentiment_category=sentiment_category,
            account_id=account_id
        )
        return {
            'results': [analysis.to_dict() for analysis in page_result.items],
            'pagination': page_result.pagination_dict(),
        }
