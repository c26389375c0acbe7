"""Single-page learner client served at the API root."""

LEARNER_PAGE_HTML = """<!doctype html>
<html lang=\"en\">
  <head>
    <meta charset=\"utf-8\" />
    <title>Debug Arena</title>
    <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\" />
    <style>
      :root { font-family: 'Inter', system-ui, sans-serif; background: #0b1120; color: #f5f7ff; }
      body { margin: 0; padding: 1.5rem; display: flex; flex-direction: column; gap: 1rem; }
      .card { background: #111a30; border-radius: 0.75rem; padding: 1.5rem; box-shadow: 0 0.5rem 1.5rem rgba(0, 0, 0, 0.4); }
      .hidden { display: none; }
      .primary-button { border: none; border-radius: 0.75rem; padding: 0.85rem 1.5rem; font-size: 1rem; background: #1f9aa5; color: #fff; cursor: pointer; }
      .primary-button:disabled { opacity: 0.6; cursor: not-allowed; }
      .assignment { display: flex; justify-content: space-between; align-items: center; padding: 0.75rem 0; border-bottom: 1px solid #1e293b; }
      #code-editor { width: 100%; min-height: 16rem; font-family: 'JetBrains Mono', monospace; font-size: 0.95rem; background: #020617; color: #e2e8f0; border: 1px solid #1e293b; border-radius: 0.5rem; padding: 0.75rem; box-sizing: border-box; }
      #progress { color: #94a3b8; }
      #status { min-height: 1.25rem; color: #f87171; }
      #warning { color: #facc15; }
      #timer-label { font-size: 0.95rem; color: #facc15; }
      .timer-track { width: 100%; height: 0.6rem; background: rgba(250, 204, 21, 0.25); border-radius: 999px; overflow: hidden; margin-bottom: 1rem; }
      #timer-fill { width: 100%; height: 100%; background: #facc15; transform-origin: left center; transition: transform 120ms linear; }
    </style>
  </head>
  <body>
    <section class=\"card\" id=\"dashboard-card\">
      <h1>My Quizzes</h1>
      <div id=\"assignment-list\">Loading…</div>
    </section>
    <section class=\"card hidden\" id=\"quiz-card\">
      <p id=\"progress\"></p>
      <div id=\"question-container\"></div>
      <span id=\"timer-label\"></span>
      <div class=\"timer-track\"><div id=\"timer-fill\"></div></div>
      <textarea id=\"code-editor\" spellcheck=\"false\"></textarea>
      <p><button id=\"submit-button\" class=\"primary-button\">Submit</button></p>
      <p id=\"warning\"></p>
      <p id=\"status\"></p>
    </section>
    <section class=\"card hidden\" id=\"results-card\">
      <h2>Quiz complete</h2>
      <p id=\"results-text\"></p>
      <button id=\"back-button\" class=\"primary-button\">Back to my quizzes</button>
    </section>
    <script>
      const dashboardCard = document.getElementById('dashboard-card');
      const quizCard = document.getElementById('quiz-card');
      const resultsCard = document.getElementById('results-card');
      const assignmentList = document.getElementById('assignment-list');
      const questionContainer = document.getElementById('question-container');
      const progressEl = document.getElementById('progress');
      const timerLabel = document.getElementById('timer-label');
      const timerFill = document.getElementById('timer-fill');
      const editor = document.getElementById('code-editor');
      const submitButton = document.getElementById('submit-button');
      const warningEl = document.getElementById('warning');
      const statusEl = document.getElementById('status');
      const resultsText = document.getElementById('results-text');

      let assignmentId = null;
      let currentQuestionId = null;
      let pollHandle = null;
      let codeSyncHandle = null;

      function show(card) {
        for (const el of [dashboardCard, quizCard, resultsCard]) {
          el.classList.toggle('hidden', el !== card);
        }
      }

      async function api(method, path, body) {
        const options = { method, headers: {} };
        if (body !== undefined) {
          options.headers['Content-Type'] = 'application/json';
          options.body = JSON.stringify(body);
        }
        const response = await fetch(path, options);
        if (!response.ok) {
          const detail = await response.json().catch(() => ({}));
          throw new Error(detail.detail || response.statusText);
        }
        return response.status === 204 ? null : response.json();
      }

      async function loadAssignments() {
        show(dashboardCard);
        const assignments = await api('GET', '/assignments');
        assignmentList.innerHTML = '';
        if (!assignments.length) {
          assignmentList.textContent = 'No quizzes assigned yet.';
          return;
        }
        for (const item of assignments) {
          const row = document.createElement('div');
          row.className = 'assignment';
          const label = document.createElement('span');
          label.textContent = item.quiz ? item.quiz.title : 'Unavailable quiz';
          const button = document.createElement('button');
          button.className = 'primary-button';
          button.textContent = item.is_completed ? 'View results' : (item.started_at ? 'Resume' : 'Start');
          button.addEventListener('click', () => openSession(item.id));
          row.append(label, button);
          assignmentList.appendChild(row);
        }
      }

      async function openSession(id) {
        assignmentId = id;
        currentQuestionId = null;
        history.pushState({ quiz: id }, '', '#quiz');
        try {
          render(await api('POST', `/assignments/${id}/session`));
        } catch (err) {
          assignmentList.textContent = err.message;
          return;
        }
        clearInterval(pollHandle);
        pollHandle = setInterval(refresh, 1000);
      }

      async function refresh() {
        if (!assignmentId) return;
        try {
          render(await api('GET', `/assignments/${assignmentId}/session`));
        } catch (err) {
          statusEl.textContent = err.message;
        }
      }

      function render(session) {
        if (session.state === 'completed') {
          clearInterval(pollHandle);
          const results = session.results;
          resultsText.textContent = results ? `You solved ${results.correct} of ${results.total} questions.` : 'Results are not available right now.';
          show(resultsCard);
          return;
        }
        show(quizCard);
        const question = session.question;
        progressEl.textContent = `Question ${session.question_index + 1} of ${session.question_count}`;
        if (question && question.id !== currentQuestionId) {
          currentQuestionId = question.id;
          questionContainer.innerHTML = question.question_html;
          editor.value = session.code;
        }
        const limit = session.quiz ? session.quiz.time_per_question : 1;
        timerLabel.textContent = `${session.remaining_seconds}s remaining`;
        timerFill.style.transform = `scaleX(${Math.max(0, session.remaining_seconds / limit)})`;
        submitButton.disabled = session.state !== 'active';
        submitButton.textContent = session.state === 'submitting' ? 'Submitting…' : 'Submit';
        statusEl.textContent = session.last_error || '';
        if (session.tab_switch_count > 0) {
          warningEl.textContent = `Tab switches recorded: ${session.tab_switch_count}`;
        }
      }

      async function sendEvent(kind) {
        if (!assignmentId) return null;
        try {
          return await api('POST', `/assignments/${assignmentId}/session/events`, { kind });
        } catch (err) {
          return null;
        }
      }

      editor.addEventListener('input', () => {
        clearTimeout(codeSyncHandle);
        codeSyncHandle = setTimeout(() => {
          api('PUT', `/assignments/${assignmentId}/session/code`, { code: editor.value }).catch(() => {});
        }, 250);
      });

      submitButton.addEventListener('click', async () => {
        submitButton.disabled = true;
        clearTimeout(codeSyncHandle);
        try {
          await api('PUT', `/assignments/${assignmentId}/session/code`, { code: editor.value });
          const result = await api('POST', `/assignments/${assignmentId}/session/submit`, {
            question_id: currentQuestionId,
          });
          render(result.session);
        } catch (err) {
          statusEl.textContent = err.message;
          submitButton.disabled = false;
        }
      });

      document.addEventListener('visibilitychange', () => {
        sendEvent(document.hidden ? 'visibility_hidden' : 'visibility_visible');
      });

      document.addEventListener('keydown', (event) => {
        if (!assignmentId || quizCard.classList.contains('hidden')) return;
        const key = event.key.toLowerCase();
        if ((event.ctrlKey || event.metaKey) && (key === 'c' || key === 'v')) {
          event.preventDefault();
          sendEvent(key === 'c' ? 'copy' : 'paste');
          warningEl.textContent = 'Copy and paste are disabled during the quiz.';
        }
      });

      window.addEventListener('popstate', async () => {
        if (!assignmentId || quizCard.classList.contains('hidden')) return;
        const result = await sendEvent('back_navigation');
        if (result && result.suppress_default) {
          history.pushState({ quiz: assignmentId }, '', '#quiz');
        }
      });

      document.getElementById('back-button').addEventListener('click', async () => {
        if (assignmentId) {
          await api('DELETE', `/assignments/${assignmentId}/session`).catch(() => {});
        }
        assignmentId = null;
        history.replaceState(null, '', '#');
        loadAssignments().catch((err) => { assignmentList.textContent = err.message; });
      });

      loadAssignments().catch((err) => { assignmentList.textContent = err.message; });
    </script>
  </body>
</html>
"""
